"""
Geo Query Builder - lowers typed listing filters to a store query plus
in-process predicates, and paginates the result.

Firestore has no radius query and allows a range filter on one field
only, so the plan pushes equality filters (and the latitude band of a
geo filter) to the store and applies the rest in Python:
- exact great-circle distance (haversine), never flat Euclidean
- case-insensitive search over title, description and address
- admin spam buckets and date ranges

When nothing has to run in process, ordering, offset, limit and the
total count are pushed down to the store instead.
"""

from dataclasses import dataclass, field
from firebase_admin import firestore
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import math

from civictrack.core.errors import ValidationError
from civictrack.models.filters import AdminIssueFilter, IssueListFilter, SortField, SortOrder, SpamBucket
from civictrack.models.issue import Pagination
from civictrack.utils.firestore_helpers import count_query, snapshot_to_dict, to_datetime, where_filter
from civictrack.utils.geo import bounding_box, haversine_meters

logger = logging.getLogger(__name__)

ISSUES_COLLECTION = "issues"

# API sort key → stored field
SORT_FIELDS = {
    SortField.CREATED_AT: "created_at",
    SortField.UPVOTES: "upvotes",
    SortField.VIEWS: "views",
    SortField.SPAM_VOTES: "spam_votes",
    SortField.DISTANCE: "distance",
}


@dataclass(frozen=True)
class GeoFilter:
    """Radius-based geographic inclusion predicate."""

    latitude: float
    longitude: float
    radius_meters: float

    def bounds(self) -> Tuple[float, float, float, float]:
        return bounding_box(self.latitude, self.longitude, self.radius_meters)

    def distance_to(self, data: Dict[str, Any]) -> Optional[float]:
        location = data.get("location") or {}
        lat = location.get("latitude")
        lng = location.get("longitude")
        if lat is None or lng is None:
            return None
        return haversine_meters(self.latitude, self.longitude, lat, lng)


def build_geo_filter(latitude: float, longitude: float, radius_meters: float) -> GeoFilter:
    """
    Build a geo filter around a center point.

    Raises:
        ValidationError: Coordinates out of range or non-positive radius
    """
    if latitude is None or not -90 <= latitude <= 90:
        raise ValidationError("Latitude must be between -90 and 90", field="lat")
    if longitude is None or not -180 <= longitude <= 180:
        raise ValidationError("Longitude must be between -180 and 180", field="lng")
    if radius_meters is None or radius_meters <= 0:
        raise ValidationError("Distance must be a positive number of meters", field="distance")
    return GeoFilter(latitude=latitude, longitude=longitude, radius_meters=radius_meters)


@dataclass
class QueryPlan:
    store_filters: List[Tuple[str, str, Any]] = field(default_factory=list)
    predicates: List[Callable[[Dict[str, Any]], bool]] = field(default_factory=list)
    geo: Optional[GeoFilter] = None
    sort_field: str = "created_at"
    descending: bool = True

    @property
    def runs_in_store(self) -> bool:
        return not self.predicates and self.geo is None and self.sort_field != "distance"


@dataclass
class Page:
    items: List[Tuple[Dict[str, Any], Optional[float]]]
    pagination: Pagination


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def _search_predicate(term: str) -> Callable[[Dict[str, Any]], bool]:
    needle = term.lower()

    def matches(data: Dict[str, Any]) -> bool:
        for key in ("title", "description", "address"):
            value = data.get(key)
            if value and needle in value.lower():
                return True
        return False

    return matches


def _spam_bucket_predicate(bucket: SpamBucket, threshold: int) -> Callable[[Dict[str, Any]], bool]:
    if bucket == SpamBucket.HIGH:
        return lambda data: data.get("spam_votes", 0) >= threshold
    if bucket == SpamBucket.MEDIUM:
        return lambda data: 1 <= data.get("spam_votes", 0) < threshold
    return lambda data: data.get("spam_votes", 0) < 1


def _date_range_predicate(date_from, date_to) -> Callable[[Dict[str, Any]], bool]:
    date_from = to_datetime(date_from)
    date_to = to_datetime(date_to)

    def matches(data: Dict[str, Any]) -> bool:
        created_at = to_datetime(data.get("created_at"))
        if created_at is None:
            return False
        if date_from and created_at < date_from:
            return False
        if date_to and created_at > date_to:
            return False
        return True

    return matches


class GeoQueryBuilder:
    """Builds and executes read plans over the issues collection."""

    def __init__(self, db, spam_threshold: int):
        self.db = db
        self.spam_threshold = spam_threshold

    def _base_plan(self, filters: IssueListFilter) -> QueryPlan:
        plan = QueryPlan(
            sort_field=SORT_FIELDS[SortField(filters.sort)],
            descending=SortOrder(filters.order) == SortOrder.DESC,
        )
        if filters.category:
            plan.store_filters.append(("category", "==", _value(filters.category)))
        if filters.status:
            plan.store_filters.append(("status", "==", _value(filters.status)))
        if filters.is_anonymous is not None:
            plan.store_filters.append(("is_anonymous", "==", filters.is_anonymous))
        if filters.search:
            plan.predicates.append(_search_predicate(filters.search))
        if filters.geo:
            plan.geo = build_geo_filter(filters.geo.latitude, filters.geo.longitude, filters.geo.distance)
        if plan.sort_field == "distance" and plan.geo is None:
            # Distance ordering needs a center point
            plan.sort_field = "created_at"
        return plan

    def plan_public(self, filters: IssueListFilter) -> QueryPlan:
        """Public listings only ever see visible issues."""
        plan = self._base_plan(filters)
        plan.store_filters.append(("is_visible", "==", True))
        return plan

    def plan_admin(self, filters: AdminIssueFilter) -> QueryPlan:
        plan = self._base_plan(filters)
        if filters.is_visible is not None:
            plan.store_filters.append(("is_visible", "==", filters.is_visible))
        if filters.priority:
            plan.store_filters.append(("priority", "==", _value(filters.priority)))
        if filters.spam_votes:
            plan.predicates.append(_spam_bucket_predicate(SpamBucket(filters.spam_votes), self.spam_threshold))
        if filters.date_from or filters.date_to:
            plan.predicates.append(_date_range_predicate(filters.date_from, filters.date_to))
        return plan

    def _store_query(self, plan: QueryPlan):
        query = self.db.collection(ISSUES_COLLECTION)
        for field_path, op_string, value in plan.store_filters:
            query = where_filter(query, field_path, op_string, value)
        if plan.geo is not None:
            min_lat, max_lat, _, _ = plan.geo.bounds()
            query = where_filter(query, "location.latitude", ">=", min_lat)
            query = where_filter(query, "location.latitude", "<=", max_lat)
        return query

    def paginate(self, plan: QueryPlan, page: int, limit: int) -> Page:
        """
        Execute a plan and return one page plus the pagination envelope.

        The total is counted over exactly the same filter as the items.
        """
        page = max(1, page)
        limit = max(1, limit)
        offset = (page - 1) * limit
        query = self._store_query(plan)

        if plan.runs_in_store:
            total = count_query(query)
            direction = firestore.Query.DESCENDING if plan.descending else firestore.Query.ASCENDING
            docs = query.order_by(plan.sort_field, direction=direction).offset(offset).limit(limit).stream()
            items = [(snapshot_to_dict(doc), None) for doc in docs]
            return Page(items=items, pagination=build_pagination(page, limit, total))

        matched: List[Tuple[Dict[str, Any], Optional[float]]] = []
        for doc in query.stream():
            data = snapshot_to_dict(doc)
            distance = None
            if plan.geo is not None:
                distance = plan.geo.distance_to(data)
                if distance is None or distance > plan.geo.radius_meters:
                    continue
            if all(predicate(data) for predicate in plan.predicates):
                matched.append((data, distance))

        matched.sort(key=lambda item: _sort_key(item, plan.sort_field), reverse=plan.descending)
        total = len(matched)
        logger.debug(f"Geo/in-process plan matched {total} issues")
        return Page(items=matched[offset:offset + limit], pagination=build_pagination(page, limit, total))


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def _sort_key(item: Tuple[Dict[str, Any], Optional[float]], sort_field: str) -> Tuple:
    data, distance = item
    if sort_field == "distance":
        primary = distance if distance is not None else math.inf
    elif sort_field == "created_at":
        created = to_datetime(data.get("created_at"))
        primary = created.timestamp() if created else 0.0
    else:
        primary = data.get(sort_field) or 0
    created = to_datetime(data.get("created_at"))
    return (primary, created.timestamp() if created else 0.0, data["id"])
