import os

os.environ.setdefault("USE_MOCK_DB", "true")

from fastapi.testclient import TestClient  # noqa: E402
from civictrack.main import app  # noqa: E402

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
resp = client.get('/health/db')
print(resp.status_code)
print(resp.json())

print('\nISSUES:')
resp = client.get('/issues', params={'limit': 5})
print(resp.status_code)
print(resp.json()['data']['pagination'])
