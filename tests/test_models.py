from __future__ import annotations

import itertools
import unittest

from postcard.models import AuditResult, PostcardReport, SearchHit, TriangulationResult
from postcard.schema import Postmark


class TestAuditResult(unittest.TestCase):
    def test_total_is_weighted_sum_of_sub_scores(self) -> None:
        fractions = (0.0, 0.1, 0.25, 0.4, 0.5, 0.9, 1.0)
        for origin, temporal, visual in itertools.product((0, 1), fractions, fractions):
            result = AuditResult(
                origin_score=origin,
                temporal_score=temporal,
                visual_score=visual,
                audit_log=("entry",),
            )
            expected = 0.4 * origin + 0.3 * temporal + 0.3 * visual
            self.assertAlmostEqual(result.total_score, expected, delta=1e-9)
            self.assertGreaterEqual(result.total_score, 0.0)
            self.assertLessEqual(result.total_score, 1.0 + 1e-9)

    def test_total_cannot_be_assigned(self) -> None:
        result = AuditResult(origin_score=1, temporal_score=1.0, visual_score=0.9, audit_log=("x",))
        with self.assertRaises(AttributeError):
            result.total_score = 0.1  # type: ignore[misc]

    def test_rejects_out_of_range_scores(self) -> None:
        with self.assertRaises(ValueError):
            AuditResult(origin_score=2, temporal_score=0.0, visual_score=0.0, audit_log=("x",))
        with self.assertRaises(ValueError):
            AuditResult(origin_score=1, temporal_score=1.5, visual_score=0.0, audit_log=("x",))
        with self.assertRaises(ValueError):
            AuditResult(origin_score=1, temporal_score=0.0, visual_score=-0.1, audit_log=("x",))

    def test_origin_must_be_plain_int(self) -> None:
        for origin in (True, False, 1.0, 0.0):
            with self.assertRaises(ValueError, msg=repr(origin)):
                AuditResult(origin_score=origin, temporal_score=0.0, visual_score=0.0, audit_log=("x",))

    def test_rejects_empty_log(self) -> None:
        with self.assertRaises(ValueError):
            AuditResult(origin_score=0, temporal_score=0.0, visual_score=0.0, audit_log=())

    def test_skipped_result(self) -> None:
        result = AuditResult.skipped("Skipping audit: No target URL identified.")
        self.assertEqual(result.origin_score, 0)
        self.assertEqual(result.temporal_score, 0.0)
        self.assertEqual(result.visual_score, 0.0)
        self.assertEqual(result.total_score, 0.0)
        self.assertEqual(len(result.audit_log), 1)


class TestPostcardReport(unittest.TestCase):
    def test_to_dict_is_json_ready(self) -> None:
        report = PostcardReport(
            transcript="hello",
            postmark=Postmark(platform="Reddit", main_text="hello"),
            triangulation=TriangulationResult(
                candidate_url="https://reddit.com/r/a/1",
                queries=("q1",),
                search_hits=((SearchHit(url="https://reddit.com/r/a/1", title="t"),),),
            ),
            audit=AuditResult(origin_score=1, temporal_score=0.5, visual_score=0.9, audit_log=("a", "b")),
            timestamp="2026-01-01T00:00:00+00:00",
        )

        payload = report.to_dict()
        self.assertEqual(payload["postmark"]["platform"], "Reddit")
        self.assertIsNone(payload["postmark"]["timestamp_text"])
        self.assertEqual(payload["triangulation"]["queries"], ["q1"])
        self.assertEqual(payload["triangulation"]["search_hits"][0][0]["title"], "t")
        self.assertAlmostEqual(payload["audit"]["total_score"], 0.4 + 0.15 + 0.27)
        self.assertEqual(payload["audit"]["audit_log"], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
