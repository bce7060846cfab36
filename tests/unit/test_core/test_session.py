"""Unit tests for ComparisonSession state transitions."""
from pixelqa.core.entities import AlignmentConfig, AnalysisResult, RasterImage
from pixelqa.core.session import ComparisonSession


def raster(data: bytes) -> RasterImage:
    return RasterImage(pixel_data=data, width=100, height=50)


DESIGN = raster(b"design")
DEV = raster(b"dev")
RESULT = AnalysisResult(summary="ok")


def ready_session() -> ComparisonSession:
    return ComparisonSession().with_design(DESIGN).with_dev(DEV)


class TestUploads:
    """Uploads replace images and reset alignment."""

    def test_cannot_analyze_without_both_images(self):
        session = ComparisonSession().with_design(DESIGN)

        assert not session.has_images
        started, ticket = session.begin_analysis()
        assert ticket is None
        assert started is session

    def test_new_upload_resets_alignment(self):
        session = ready_session().with_alignment(AlignmentConfig(1.5, 20, 30))

        assert session.with_dev(raster(b"dev2")).alignment == AlignmentConfig()
        assert session.with_design(raster(b"design2")).alignment == AlignmentConfig()

    def test_reset_alignment(self):
        session = ready_session().with_alignment(AlignmentConfig(1.5, 20, 30))

        assert session.reset_alignment().alignment.is_identity()


class TestAnalysisLifecycle:
    """Begin/apply/fail transitions and the stale-result guard."""

    def test_begin_analysis_captures_ticket(self):
        session = ready_session().with_alignment(AlignmentConfig(1.2, 10, -5))

        started, ticket = session.begin_analysis()

        assert started.is_analyzing
        assert started.result is None
        assert ticket.run_id == started.run_id == 1
        assert ticket.design_fingerprint == DESIGN.fingerprint
        assert ticket.dev_fingerprint == DEV.fingerprint
        assert ticket.alignment == AlignmentConfig(1.2, 10, -5)

    def test_second_begin_while_analyzing_is_noop(self):
        started, _ = ready_session().begin_analysis()

        again, ticket = started.begin_analysis()

        assert ticket is None
        assert again is started

    def test_apply_result(self):
        started, ticket = ready_session().begin_analysis()

        done = started.apply_result(ticket, RESULT)

        assert done.result is RESULT
        assert not done.is_analyzing
        assert done.error is None

    def test_begin_clears_previous_result_and_error(self):
        started, ticket = ready_session().begin_analysis()
        failed = started.fail(ticket, "boom")

        restarted, _ = failed.begin_analysis()

        assert restarted.error is None
        assert restarted.result is None

    def test_result_discarded_after_new_upload(self):
        """A result for images no longer on screen is dropped."""
        started, ticket = ready_session().begin_analysis()
        replaced = started.with_dev(raster(b"other dev"))

        after = replaced.apply_result(ticket, RESULT)

        assert after.result is None
        assert not after.is_analyzing
        assert after.dev.fingerprint == raster(b"other dev").fingerprint

    def test_result_discarded_after_reset(self):
        started, ticket = ready_session().begin_analysis()
        reset = started.reset()

        after = reset.apply_result(ticket, RESULT)

        assert after is reset
        assert after.result is None
        assert after.design is None

    def test_reupload_of_same_image_keeps_result(self):
        """Identity is by content, so re-uploading identical bytes is not a change."""
        started, ticket = ready_session().begin_analysis()
        same = started.with_dev(raster(b"dev"))

        assert same.apply_result(ticket, RESULT).result is RESULT

    def test_fail_records_error(self):
        started, ticket = ready_session().begin_analysis()

        failed = started.fail(ticket, "All candidate models/ endpoints failed.")

        assert failed.error == "All candidate models/ endpoints failed."
        assert not failed.is_analyzing


class TestResetAndView:
    def test_reset_clears_everything(self):
        started, ticket = ready_session().with_alignment(AlignmentConfig(2.0, 5, 5)).begin_analysis()
        session = started.apply_result(ticket, RESULT).select_issue(0)

        reset = session.reset()

        assert reset.design is None and reset.dev is None
        assert reset.result is None
        assert reset.alignment == AlignmentConfig()
        assert reset.active_issue_index is None
        assert reset.run_id > session.run_id

    def test_toggle_ignore_content_clears_selection(self):
        session = ready_session().select_issue(2)

        toggled = session.with_ignore_content(True)

        assert toggled.ignore_content
        assert toggled.active_issue_index is None
