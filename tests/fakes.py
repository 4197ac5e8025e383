"""
In-memory stand-ins for the cluster and the PipelineActivity store.
"""


class FakeCluster:
    """Кластер в памяти: запоминает вызовы и выдаёт uid вида '<kind>-uid'."""

    def __init__(self, existing=None, fail_on=None):
        self.objects = dict(existing or {})
        self.fail_on = fail_on
        self.calls = []

    def get(self, kind, name, namespace):
        self.calls.append(("get", kind))
        return self.objects.get((kind, name))

    def list(self, kind, namespace):
        self.calls.append(("list", kind))
        return [obj for (stored_kind, _), obj in self.objects.items() if stored_kind == kind]

    def _store(self, op, obj):
        kind = obj["kind"]
        self.calls.append((op, kind))
        if kind == self.fail_on:
            raise RuntimeError("forbidden")
        stored = dict(obj)
        stored["metadata"] = dict(obj["metadata"], uid=f"{kind.lower()}-uid")
        self.objects[(kind, obj["metadata"]["name"])] = stored
        return stored

    def create(self, obj, namespace):
        return self._store("create", obj)

    def update(self, obj, namespace):
        return self._store("update", obj)

    def get_secret(self, name, namespace):
        return None


class FakeActivityStore:
    def __init__(self):
        self.keys = []

    def get_or_create(self, key):
        self.keys.append(key)
        return {"metadata": {"name": key.name, "uid": "activity-uid"}}, "activity-uid"
