from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from promptarena.exceptions import InvalidRatingError, ModelNotInTestError, TestNotFoundError
from promptarena.logging_config import get_logger
from promptarena.models import PlaygroundTest, TestOutcome, TestRequest, UsageStats
from promptarena.pricing import sum_costs

logger = get_logger(__name__)


class TestStore:
    """Completed tests as one JSON document per test id."""

    __test__ = False

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def save(self, request: TestRequest, outcome: TestOutcome, now: datetime | None = None) -> PlaygroundTest:
        test = PlaygroundTest(
            id=uuid.uuid4().hex,
            prompt_text=request.prompt_text,
            parameters=request.parameters,
            models=list(request.models),
            results=outcome.results,
            total_cost=outcome.total_cost,
            summary=outcome.summary,
            created_at=now or datetime.now(timezone.utc),
        )
        self._write(test)
        logger.debug("test_saved", test_id=test.id, path=str(self._path(test.id)))
        return test

    def get(self, test_id: str) -> PlaygroundTest:
        path = self._path(test_id)
        if not path.is_file():
            raise TestNotFoundError(test_id)
        try:
            return PlaygroundTest.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise TestNotFoundError(test_id) from exc

    def list(self, limit: int | None = 50) -> list[PlaygroundTest]:
        if not self.root.is_dir():
            return []
        tests = []
        for path in self.root.glob("*.json"):
            try:
                tests.append(PlaygroundTest.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as exc:
                logger.warning("test_file_unreadable", path=str(path), error=str(exc))
        tests.sort(key=lambda t: t.created_at, reverse=True)
        return tests[:limit]

    def rate(self, test_id: str, model_name: str, rating: int, now: datetime | None = None) -> PlaygroundTest:
        """Attach ``rating`` (1-5) to every result of one model and persist the test."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidRatingError(f"Rating must be an integer from 1 to 5, got {rating!r}")

        test = self.get(test_id)
        matches = [idx for idx, result in enumerate(test.results) if result.model_name == model_name]
        if not matches:
            raise ModelNotInTestError(test_id, model_name)
        failed = [test.results[idx] for idx in matches if not test.results[idx].success]
        if failed:
            raise InvalidRatingError(f"Cannot rate {model_name}: the call failed ({failed[0].error})")

        # a model listed twice gets the rating on every one of its results
        rated_at = now or datetime.now(timezone.utc)
        results = list(test.results)
        for idx in matches:
            results[idx] = results[idx].with_rating(rating, rated_at)
        updated = test.model_copy(update={"results": results})
        self._write(updated)
        logger.info("result_rated", test_id=test_id, model=model_name, rating=rating)
        return updated

    def usage(self, now: datetime | None = None) -> UsageStats:
        now = _as_aware(now or datetime.now(timezone.utc))
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        tests = self.list(limit=None)
        return UsageStats(
            tests_run=len(tests),
            total_cost=sum_costs(t.total_cost for t in tests),
            monthly_tests=sum(1 for t in tests if _as_aware(t.created_at) >= month_start),
            last_active=tests[0].created_at if tests else None,
            monthly_reset=month_start,
        )

    def _path(self, test_id: str) -> Path:
        if not test_id or os.sep in test_id or "/" in test_id or test_id.startswith("."):
            raise TestNotFoundError(test_id)
        return self.root / f"{test_id}.json"

    def _write(self, test: PlaygroundTest) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(test.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(test.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        tmp.replace(path)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
