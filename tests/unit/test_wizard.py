"""Unit tests for the form wizard and its navigation state."""

import pytest

from resume_builder.editor.models import PhotoFile, ResumeDraft, SavedResume, WorkExperience
from resume_builder.editor.wizard import (
    STEP_KEYS,
    FormWizard,
    NavigationState,
    get_step,
    next_border_style,
)


@pytest.mark.unit
def test_steps_are_in_wizard_order():
    assert STEP_KEYS == ["general-info", "personal-info", "work-experience", "education", "skills", "summary"]
    assert get_step("skills").title == "Skills"
    with pytest.raises(KeyError):
        get_step("nope")


@pytest.mark.unit
def test_valid_patch_updates_draft_and_notifies_subscribers():
    seen = []
    wizard = FormWizard()
    wizard.subscribe(seen.append)

    result = wizard.apply_patch("general-info", {"title": "  Backend CV ", "description": "for ACME"})

    assert result.applied
    assert result.errors == []
    assert wizard.draft.title == "Backend CV"
    assert len(seen) == 1
    assert seen[0].description == "for ACME"


@pytest.mark.unit
def test_patch_only_touches_fields_it_carries():
    wizard = FormWizard(ResumeDraft(first_name="Ada", job_title="Engineer"))
    wizard.apply_patch("personal-info", {"first_name": "Grace"})
    assert wizard.draft.first_name == "Grace"
    assert wizard.draft.job_title == "Engineer"


@pytest.mark.unit
def test_invalid_patch_keeps_stale_draft_and_reports_errors():
    seen = []
    existing = WorkExperience(position="Dev", start_date="2020-01-01")
    wizard = FormWizard(ResumeDraft(work_experiences=[existing]))
    wizard.subscribe(seen.append)

    result = wizard.apply_patch(
        "work-experience",
        {"work_experiences": [{"position": "Lead", "start_date": "January 2021"}]},
    )

    assert not result.applied
    assert any("YYYY-MM-DD" in e["msg"] for e in result.errors)
    assert wizard.draft.work_experiences == [existing]
    assert seen == []


@pytest.mark.unit
def test_unknown_section_is_rejected():
    wizard = FormWizard()
    result = wizard.apply_patch("hobbies", {"x": 1})
    assert not result.applied
    assert result.errors[0]["loc"] == ["section"]


@pytest.mark.unit
def test_photo_cannot_be_patched_but_can_be_set():
    seen = []
    wizard = FormWizard(ResumeDraft(photo="/media/old.webp"))
    wizard.subscribe(seen.append)

    result = wizard.apply_patch("personal-info", {"first_name": "Ada", "photo": "/media/other.webp"})
    assert not result.applied
    assert result.errors[0]["loc"] == ["photo"]
    assert wizard.draft.photo == "/media/old.webp"
    assert seen == []

    photo = PhotoFile(name="me.png", size=3, content_type="image/png", data=b"png")
    wizard.set_photo(photo)
    assert wizard.draft.photo == photo
    wizard.set_photo(None)
    assert wizard.draft.photo is None
    assert len(seen) == 2


@pytest.mark.unit
def test_lists_are_replaced_wholesale():
    wizard = FormWizard(ResumeDraft(skills=["Go", "Rust"]))
    wizard.apply_patch("skills", {"skills": "Python, SQL, Python"})
    assert wizard.draft.skills == ["Python", "SQL"]


@pytest.mark.unit
def test_style_section_normalizes_colour_and_checks_border():
    wizard = FormWizard()
    assert wizard.apply_patch("style", {"color_hex": "FF00AA"}).applied
    assert wizard.draft.color_hex == "#ff00aa"
    result = wizard.apply_patch("style", {"border_style": "wavy"})
    assert not result.applied
    assert wizard.draft.border_style is None


@pytest.mark.unit
def test_step_navigation():
    wizard = FormWizard(step="education")
    assert wizard.current_step.key == "education"
    assert wizard.previous_step().key == "work-experience"
    assert wizard.next_step().key == "skills"
    wizard.set_step("summary")
    assert wizard.next_step() is None
    wizard.set_step("general-info")
    assert wizard.previous_step() is None


@pytest.mark.unit
def test_navigation_query_round_trip():
    state = NavigationState(step="skills", resume_id="abc123")
    query = state.to_query()
    assert query == "?step=skills&resumeId=abc123"
    assert NavigationState.from_query({"step": "skills", "resumeId": "abc123"}) == state


@pytest.mark.unit
def test_unknown_step_in_query_falls_back_to_first_step():
    state = NavigationState.from_query({"step": "bogus"})
    assert state.step == "general-info"
    assert state.resume_id is None
    assert state.to_query(session="s1") == "?step=general-info&session=s1"


@pytest.mark.unit
def test_adopt_saved_sets_id_without_notifying():
    seen = []
    wizard = FormWizard()
    wizard.subscribe(seen.append)
    wizard.adopt_saved(SavedResume(id="r1", user_id=1))
    assert wizard.draft.id == "r1"
    assert wizard.navigation.resume_id == "r1"
    assert seen == []


@pytest.mark.unit
def test_border_style_cycles():
    assert next_border_style(None) == "circle"
    assert next_border_style("square") == "circle"
    assert next_border_style("circle") == "squircle"
    assert next_border_style("squircle") == "square"
