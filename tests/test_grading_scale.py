"""Grading scale validation, versioning and grade resolution."""

import random
from decimal import Decimal

import pytest

from exam_engine.core.exceptions import NotFoundError, ScaleInUseError, ValidationError
from exam_engine.core.scoring import quantize
from exam_engine.schemas.grading_scale import GradingScaleCreate, GradingScaleVersionCreate
from exam_engine.services.grading_scale import GradingScaleService, resolve_band, validate_bands

from tests.conftest import STANDARD_BANDS, band_inputs


class TestValidateBands:
    def test_standard_bands_are_sorted(self):
        shuffled = list(reversed(band_inputs()))
        ordered = validate_bands(shuffled)
        assert [b.grade for b in ordered] == [grade for _, _, grade, _ in STANDARD_BANDS]

    def test_gap_is_rejected(self):
        bands = band_inputs([(0, 40, "F", 0), (50, 100, "A", 10)])
        with pytest.raises(ValidationError) as exc_info:
            validate_bands(bands)
        messages = [e["message"] for e in exc_info.value.details["errors"]]
        assert any("Gap between 40" in m for m in messages)

    def test_overlap_is_rejected(self):
        bands = band_inputs([(0, 50, "F", 0), (40, 100, "A", 10)])
        with pytest.raises(ValidationError) as exc_info:
            validate_bands(bands)
        assert "overlaps" in exc_info.value.details["errors"][0]["message"]

    def test_must_cover_zero_to_hundred(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_bands(band_inputs([(10, 90, "B", 5)]))
        fields = {e["field"] for e in exc_info.value.details["errors"]}
        assert fields == {"min_percentage", "max_percentage"}

    def test_inverted_band_is_rejected(self):
        with pytest.raises(ValidationError):
            validate_bands(band_inputs([(0, 50, "F", 0), (50, 50, "E", 1), (50, 100, "A", 10)]))

    def test_out_of_range_bound_is_rejected(self):
        with pytest.raises(ValidationError):
            validate_bands(band_inputs([(0, 50, "F", 0), (50, 120, "A", 10)]))

    def test_sub_cent_band_is_rejected(self):
        # [0, 0.004) is stored as [0.00, 0.00)
        with pytest.raises(ValidationError) as exc_info:
            validate_bands(band_inputs([(0, "0.004", "F", 0), ("0.004", 100, "A", 10)]))
        assert exc_info.value.details["errors"][0]["field"] == "max_percentage"

    def test_bounds_are_compared_at_stored_precision(self):
        ordered = validate_bands(band_inputs([(0, "39.999", "F", 0), ("40", 100, "P", 5)]))
        assert [b.max_percentage for b in ordered] == [Decimal("40.00"), Decimal("100.00")]


TILING_MODES = ["tile", "gap", "overlap", "short_start", "short_end"]


def tiles_zero_to_hundred(bounds: list[tuple[Decimal, Decimal]]) -> bool:
    ordered = sorted(bounds)
    if any(not (Decimal(0) <= low < high <= Decimal(100)) for low, high in ordered):
        return False
    if ordered[0][0] != 0 or ordered[-1][1] != 100:
        return False
    return all(prev[1] == cur[0] for prev, cur in zip(ordered, ordered[1:]))


def random_bounds(rng: random.Random, mode: str) -> list[tuple[Decimal, Decimal]]:
    """Random two-place cut points over [0, 100], then one mode-specific distortion."""
    cuts = sorted(Decimal(c).scaleb(-2) for c in rng.sample(range(1, 10000), rng.randint(0, 8)))
    edges = [Decimal("0.00"), *cuts, Decimal("100.00")]
    bounds = [[low, high] for low, high in zip(edges, edges[1:])]
    delta = Decimal(rng.randint(1, 500)).scaleb(-2)

    if mode == "gap" and len(bounds) > 1:
        bounds[rng.randrange(1, len(bounds))][0] += delta
    elif mode == "overlap" and len(bounds) > 1:
        bounds[rng.randrange(1, len(bounds))][0] -= delta
    elif mode == "short_start":
        bounds[0][0] += delta
    elif mode == "short_end":
        bounds[-1][1] -= delta

    rng.shuffle(bounds)
    return [(low, high) for low, high in bounds]


@pytest.mark.parametrize("seed", range(20))
def test_validate_bands_accepts_exactly_the_tilings(seed):
    rng = random.Random(seed)
    for mode in TILING_MODES * 8:
        bounds = random_bounds(rng, mode)
        bands = band_inputs([(low, high, f"G{i}", i) for i, (low, high) in enumerate(bounds)])
        if tiles_zero_to_hundred(bounds):
            ordered = validate_bands(bands)
            assert ordered[0].min_percentage == 0
            assert ordered[-1].max_percentage == 100
        else:
            with pytest.raises(ValidationError):
                validate_bands(bands)


class TestResolveBand:
    @pytest.mark.parametrize(
        "percentage,grade",
        [
            (Decimal("0"), "F"),
            (Decimal("32.99"), "F"),
            (Decimal("33"), "D"),
            (Decimal("89.99"), "A"),
            (Decimal("90"), "A+"),
            (Decimal("100"), "A+"),
        ],
    )
    def test_boundaries_belong_to_upper_band(self, percentage, grade):
        assert resolve_band(band_inputs(), percentage).grade == grade

    def test_out_of_range_percentages_are_clamped(self):
        assert resolve_band(band_inputs(), Decimal("-5")).grade == "F"
        assert resolve_band(band_inputs(), Decimal("104.5")).grade == "A+"

    def test_every_percentage_matches_exactly_one_band(self):
        rng = random.Random(20250301)
        bands = band_inputs()
        for _ in range(500):
            pct = quantize(Decimal(str(rng.uniform(0, 100))))
            matches = [
                b for b in bands
                if b.min_percentage <= pct < b.max_percentage
                or (pct == b.max_percentage == Decimal("100"))
            ]
            assert len(matches) == 1
            assert resolve_band(bands, pct) is matches[0]


class TestGradingScaleService:
    def test_create_scale_starts_at_version_one(self, db, scope):
        service = GradingScaleService(db)
        scale = service.create_scale(scope, GradingScaleCreate(name="Standard", bands=band_inputs()))
        assert scale.version == 1
        assert len(scale.bands) == len(STANDARD_BANDS)
        assert scale.bands[0].grade == "F"

    def test_same_name_gets_next_version(self, db, scope, make_scale):
        make_scale()
        second = make_scale()
        assert second.version == 2

    def test_create_scale_version_keeps_previous(self, db, scope, make_scale):
        original = make_scale()
        service = GradingScaleService(db)
        corrected = service.create_scale_version(
            scope,
            original.id,
            GradingScaleVersionCreate(bands=band_inputs([(0, 50, "F", 0), (50, 100, "P", 5)])),
        )
        assert corrected.name == original.name
        assert corrected.version == original.version + 1
        assert len(service.get_scale(scope, original.id).bands) == len(STANDARD_BANDS)
        assert [s.version for s in service.list_scales(scope, name="Standard")] == [1, 2]

    def test_invalid_bands_are_not_saved(self, db, scope):
        service = GradingScaleService(db)
        with pytest.raises(ValidationError):
            service.create_scale(
                scope,
                GradingScaleCreate(name="Broken", bands=band_inputs([(0, 60, "F", 0), (70, 100, "A", 10)])),
            )
        assert service.list_scales(scope, name="Broken") == []

    def test_resolve(self, db, scope, make_scale):
        scale = make_scale()
        resolution = GradingScaleService(db).resolve(scope, scale.id, Decimal("72.5"))
        assert resolution.grade == "B+"
        assert resolution.grade_point == Decimal("8")

    def test_scale_from_another_tenant_is_not_found(self, db, make_scale):
        from exam_engine.core.dependencies import TenantScope

        scale = make_scale()
        with pytest.raises(NotFoundError):
            GradingScaleService(db).get_scale(TenantScope(tenant_id=999), scale.id)

    def test_delete_unreferenced_scale(self, db, scope, make_scale):
        scale = make_scale()
        service = GradingScaleService(db)
        service.delete_scale(scope, scale.id)
        with pytest.raises(NotFoundError):
            service.get_scale(scope, scale.id)

    def test_delete_referenced_scale_fails(self, db, scope, make_scale, make_exam, make_students):
        from exam_engine.models.exam import ExamStatus
        from exam_engine.schemas.mark import EnterMarksRequest, MarkEntry
        from exam_engine.services.marks import MarksService
        from exam_engine.services.results import ResultsService

        scale = make_scale()
        students = make_students(1)
        exam = make_exam(subjects=[("Math", 100, 40)], status=ExamStatus.IN_PROGRESS)
        MarksService(db).enter_marks(
            scope,
            exam.subjects[0].id,
            EnterMarksRequest(entries=[MarkEntry(student_id=students[0].id, marks_obtained=Decimal("70"))]),
        )
        exam.status = ExamStatus.COMPLETED
        db.flush()
        ResultsService(db).publish(scope, exam.id, scale.id)

        with pytest.raises(ScaleInUseError):
            GradingScaleService(db).delete_scale(scope, scale.id)

    def test_scale_of_exam_published_without_results_cannot_be_deleted(self, db, scope, make_scale, make_exam):
        from exam_engine.models.exam import ExamStatus
        from exam_engine.services.results import ResultsService

        scale = make_scale()
        exam = make_exam(subjects=[("Math", 100, 40)], status=ExamStatus.COMPLETED)
        summary = ResultsService(db).publish(scope, exam.id, scale.id)
        assert summary.total_students == 0

        with pytest.raises(ScaleInUseError):
            GradingScaleService(db).delete_scale(scope, scale.id)
        assert GradingScaleService(db).get_scale(scope, scale.id).id == scale.id
