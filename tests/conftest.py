import copy
import re
import uuid
import pytest
from azure.core import MatchConditions
from azure.cosmos import exceptions
from datetime import date, timedelta

from trainerbook.models.mod_auth import AuthUser, UserRole

_CONDITION = re.compile(r"^c\.(\w+)\s*(=|>=|<=|<|>)\s*(@\w+|true|false)$")
_ARRAY_CONTAINS = re.compile(r"^ARRAY_CONTAINS\((@\w+),\s*c\.(\w+)\)$")

class FakeContainer:
    """
    In-memory stand-in for a ContainerProxy partitioned by /trainer_id.

    Understands the AND-joined WHERE clauses the services issue; projections
    and ORDER BY are ignored and whole documents are returned.
    """

    def __init__(self):
        self.items = {}

    def _key(self, body, partition_key=None):
        return (partition_key if partition_key is not None else body.get("trainer_id"), body["id"])

    def _store(self, key, body):
        stored = copy.deepcopy(body)
        stored["_etag"] = str(uuid.uuid4())
        self.items[key] = stored
        return copy.deepcopy(stored)

    def create_item(self, body, **kwargs):
        key = self._key(body)
        if key in self.items:
            raise exceptions.CosmosResourceExistsError(
                status_code=409, message=f"Entity with the specified id already exists: {body['id']}"
            )
        return self._store(key, body)

    def upsert_item(self, body, **kwargs):
        return self._store(self._key(body), body)

    def replace_item(self, item, body, etag=None, match_condition=None, **kwargs):
        key = self._key(body)
        if key not in self.items or key[1] != item:
            raise exceptions.CosmosResourceNotFoundError(status_code=404, message=f"Entity {item} not found")
        if match_condition == MatchConditions.IfNotModified and self.items[key]["_etag"] != etag:
            raise exceptions.CosmosAccessConditionFailedError(
                status_code=412, message="The operation specified an eTag that is different from the version available"
            )
        return self._store(key, body)

    def read_item(self, item, partition_key, **kwargs):
        try:
            return copy.deepcopy(self.items[(partition_key, item)])
        except KeyError:
            raise exceptions.CosmosResourceNotFoundError(status_code=404, message=f"Entity {item} not found")

    def delete_item(self, item, partition_key, **kwargs):
        if (partition_key, item) not in self.items:
            raise exceptions.CosmosResourceNotFoundError(status_code=404, message=f"Entity {item} not found")
        del self.items[(partition_key, item)]

    def query_items(self, query, parameters=None, partition_key=None, enable_cross_partition_query=None, **kwargs):
        values = {p["name"]: p["value"] for p in parameters or []}
        where = query.split(" WHERE ", 1)[1] if " WHERE " in query else ""
        where = where.split(" ORDER BY ")[0]
        conditions = [part.strip() for part in where.split(" AND ")] if where else []

        results = []
        for (pk, _), doc in self.items.items():
            if partition_key is not None and pk != partition_key:
                continue
            if all(self._matches(doc, condition, values) for condition in conditions):
                results.append(copy.deepcopy(doc))
        return iter(results)

    @staticmethod
    def _matches(doc, condition, values):
        contains = _ARRAY_CONTAINS.match(condition)
        if contains:
            return doc.get(contains.group(2)) in values[contains.group(1)]

        match = _CONDITION.match(condition)
        if not match:
            raise ValueError(f"Unsupported condition: {condition}")
        field, operator, operand = match.groups()
        if operand in ("true", "false"):
            expected = operand == "true"
        else:
            expected = values[operand]
        actual = doc.get(field)
        if operator == "=":
            return actual == expected
        if actual is None:
            return False
        return {
            ">=": actual >= expected,
            "<=": actual <= expected,
            "<": actual < expected,
            ">": actual > expected,
        }[operator]

@pytest.fixture
def slots_db():
    return FakeContainer()

@pytest.fixture
def bookings_db():
    return FakeContainer()

@pytest.fixture
def claims_db():
    return FakeContainer()

@pytest.fixture
def trainer():
    return AuthUser(id="trainer-1", email="coach@gymapp.io", name="Coach Carter", role=UserRole.TRAINER)

@pytest.fixture
def other_trainer():
    return AuthUser(id="trainer-2", email="other.coach@gymapp.io", name="Other Coach", role=UserRole.TRAINER)

@pytest.fixture
def client_user():
    return AuthUser(id="client-1", email="jane@gymapp.io", name="Jane Client", role=UserRole.CLIENT)

@pytest.fixture
def other_client():
    return AuthUser(id="client-2", email="john@gymapp.io", name="John Client", role=UserRole.CLIENT)

@pytest.fixture
def next_monday():
    today = date.today()
    return today + timedelta(days=7 - today.weekday())
