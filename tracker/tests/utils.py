import itertools
from datetime import datetime

_ids = itertools.count(1000)


def make_event(contest_id, index, when: datetime, verdict="OK", rating=None, name=None, tags=()):
    problem = {
        "contestId": contest_id,
        "index": index,
        "name": name or f"Problem {contest_id}{index}",
        "tags": list(tags),
    }
    if rating is not None:
        problem["rating"] = rating
    return {
        "id": next(_ids),
        "contestId": contest_id,
        "creationTimeSeconds": int(when.timestamp()),
        "problem": problem,
        "verdict": verdict,
    }


class FakeCodeforcesClient:
    """In-memory stand-in for CodeforcesClient keyed by handle."""

    def __init__(self, infos=None, submissions=None, errors=None, contests=None, standings=None, ratings=None):
        self.infos = infos or {}
        self.ratings = ratings or {}
        self.submissions = submissions or {}
        self.errors = errors or {}
        self.contests = contests or []
        self.standings = standings or {}
        self.calls = []

    def _maybe_raise(self, method, key):
        exc = self.errors.get((method, key))
        if exc is not None:
            raise exc

    def get_user_info(self, handle):
        self.calls.append(("user.info", handle))
        self._maybe_raise("user.info", handle)
        return self.infos.get(handle, {"handle": handle})

    def get_user_submissions(self, handle, count=100, start=1):
        self.calls.append(("user.status", handle, count))
        self._maybe_raise("user.status", handle)
        return list(self.submissions.get(handle, []))[:count]

    def get_user_rating(self, handle):
        self.calls.append(("user.rating", handle))
        self._maybe_raise("user.rating", handle)
        return list(self.ratings.get(handle, []))

    def get_contest_list(self, gym=False):
        self.calls.append(("contest.list", gym))
        return list(self.contests)

    def get_contest_standings(self, contest_id, start=1, count=1):
        self.calls.append(("contest.standings", contest_id))
        self._maybe_raise("contest.standings", contest_id)
        return self.standings.get(contest_id, {})
