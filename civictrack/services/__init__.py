"""
Services layer - business logic goes here.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Services receive the document store and collaborators by injection
- Counters and moderation flags are written only by the owning service:
  status_workflow (status), engagement_ledger (upvotes),
  moderation_policy (spam_votes, is_visible)
"""
