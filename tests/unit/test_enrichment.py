"""
Test suite for visual enrichment representations.

System role: Verification of placeholder handling and strategy selection
"""

import uuid

from hypothesis import given
from hypothesis import strategies as st

from kb_pipeline.core.document_processing.enrichment import (
    DedicatedVisual,
    LegacyPlaceholder,
    has_placeholders,
    legacy_placeholder,
    placeholder_token,
    replace_placeholder,
    select_representation,
)


class TestPlaceholderText:
    """Test suite for placeholder token helpers."""

    def test_token_format(self) -> None:
        job_id = uuid.UUID("00000000-0000-0000-0000-000000000001")

        assert placeholder_token(job_id) == (
            "[VISUAL_ENRICHMENT_PENDING: 00000000-0000-0000-0000-000000000001]"
        )

    def test_legacy_placeholder_should_include_image_reference(self) -> None:
        assert legacy_placeholder("abc", "fig1.png") == (
            "[VISUAL_ENRICHMENT_PENDING: abc]\n(Image: fig1.png)"
        )

    def test_has_placeholders(self) -> None:
        text = f"a {placeholder_token('job-1')} b"

        assert has_placeholders(text)
        assert not has_placeholders("plain text")
        assert not has_placeholders(None)


class TestReplacePlaceholder:
    """Test suite for replace_placeholder()."""

    def test_should_replace_token_and_image_reference(self) -> None:
        text = "Intro\n" + legacy_placeholder("job-1", "chart.png") + "\nOutro"

        replaced, count = replace_placeholder(text, placeholder_token("job-1"), "A chart")

        assert count == 1
        assert replaced == "Intro\n\n\nA chart\n\nOutro"
        assert "(Image:" not in replaced

    def test_should_replace_bare_token(self) -> None:
        replaced, count = replace_placeholder(
            f"x {placeholder_token('j')} y", placeholder_token("j"), "desc"
        )

        assert count == 1
        assert replaced == "x \n\ndesc\n\n y"

    def test_should_leave_other_placeholders(self) -> None:
        text = legacy_placeholder("job-1", "a.png") + "\n" + legacy_placeholder("job-2", "b.png")

        replaced, _ = replace_placeholder(text, placeholder_token("job-1"), "first")

        assert placeholder_token("job-1") not in replaced
        assert placeholder_token("job-2") in replaced
        assert "(Image: b.png)" in replaced

    def test_description_with_backslashes_should_be_literal(self) -> None:
        replaced, _ = replace_placeholder(
            placeholder_token("j"), placeholder_token("j"), r"path C:\data\1"
        )

        assert r"C:\data\1" in replaced

    @given(
        before=st.text(alphabet="abc \n"),
        after=st.text(alphabet="abc \n"),
        description=st.text(min_size=1, max_size=50),
    )
    def test_no_token_survives_replacement(self, before: str, after: str, description: str) -> None:
        token = placeholder_token("job-x")
        text = before + legacy_placeholder("job-x", "img.png") + after + token

        replaced, count = replace_placeholder(text, token, description)

        assert count == 2
        assert token not in replaced.replace(description, "")


class TestSelectRepresentation:
    """Test suite for select_representation()."""

    def test_visual_chunk_should_be_dedicated(self) -> None:
        chunk_id, job_id = uuid.uuid4(), uuid.uuid4()

        representation = select_representation(chunk_id, "visual", "[Visual element]", job_id)

        assert representation == DedicatedVisual(chunk_id=chunk_id)

    def test_text_chunk_should_use_placeholder(self) -> None:
        job_id = uuid.uuid4()

        representation = select_representation(
            uuid.uuid4(), "text", f"see {placeholder_token(job_id)}", job_id
        )

        assert representation == LegacyPlaceholder(token=placeholder_token(job_id))

    def test_visual_chunk_carrying_token_should_use_placeholder(self) -> None:
        job_id = uuid.uuid4()

        representation = select_representation(
            uuid.uuid4(), "visual", legacy_placeholder(job_id, "x.png"), job_id
        )

        assert isinstance(representation, LegacyPlaceholder)
        assert representation == LegacyPlaceholder.for_job(job_id)
