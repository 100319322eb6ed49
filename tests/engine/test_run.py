# tests/engine/test_run.py
"""FocusGroupRun 与组合展开测试。 / FocusGroupRun & combination expansion tests."""

from datetime import datetime, timezone

import pytest

from grouper.engine.run import FocusGroupRun, expand_combinations
from grouper.primitives.models import (
    FocusGroup,
    Message,
    MessageVariant,
    MessageVariants,
    ParticipantMessagePresentation,
    Positioning,
    PromptedParticipant,
    Reaction,
    ScaledRating,
    SpecificReaction,
)

MESSAGE = Message(id="nosmoke", content="smoking is bad",
                  objective="deter smoking", deliverable="poster")
ALICE = PromptedParticipant("Alice", "15, loves tennis", "nano")
TOM = PromptedParticipant("Tom", "16, gym every day", "nano")


def _react(participant, variant, score, quotes=()):
    return SpecificReaction(
        presentation=ParticipantMessagePresentation(participant, variant),
        reaction=Reaction("good", "bad", tuple(quotes), ScaledRating(score)),
        timestamp=datetime.now(timezone.utc),
    )


def _run(*wordings, participants=(ALICE, TOM)):
    return FocusGroupRun(
        FocusGroup(list(participants)),
        Positioning((MessageVariants.of(MESSAGE, *wordings),)),
    )


class TestExpandCombinations:
    def test_size_is_participants_times_variants(self):
        other = Message(id="other", content="x")
        positioning = Positioning((
            MessageVariants.of(MESSAGE, "a", "b"),
            MessageVariants.of(other, "c"),
        ))
        combos = expand_combinations(FocusGroup([ALICE, TOM]), positioning)
        assert len(combos) == 2 * 3

    def test_variant_major_order(self):
        combos = expand_combinations(
            FocusGroup([ALICE, TOM]),
            Positioning((MessageVariants.of(MESSAGE, "a", "b"),)),
        )
        assert [(c.message_variant.wording, c.participant.name) for c in combos] == [
            ("a", "Alice"), ("a", "Tom"), ("b", "Alice"), ("b", "Tom"),
        ]

    def test_empty_group_yields_nothing(self):
        positioning = Positioning((MessageVariants.of(MESSAGE, "a"),))
        assert expand_combinations(FocusGroup([]), positioning) == []


class TestRecording:
    """记录与完整性。 / Recording & completeness."""

    def test_complete_after_every_combination_recorded(self):
        run = _run("A", "B")
        a, b = run.positioning.variants
        reactions = [_react(ALICE, a, 0.5), _react(TOM, a, 0.7),
                     _react(ALICE, b, 0.9)]
        for r in reactions:
            run.record(r)
            assert not run.is_complete()
        run.record(_react(TOM, b, 0.9))
        assert run.is_complete()
        assert len(run.reactions) == 4

    def test_duplicate_pair_rejected_and_not_counted(self):
        run = _run("A")
        variant = run.positioning.variants[0]
        run.record(_react(ALICE, variant, 0.5))
        with pytest.raises(ValueError):
            run.record(_react(ALICE, variant, 0.9))
        assert not run.is_complete()
        assert len(run.reactions) == 1

    def test_unknown_combination_rejected(self):
        run = _run("A")
        stranger = MessageVariant(MESSAGE, "not in this run")
        with pytest.raises(ValueError):
            run.record(_react(ALICE, stranger, 0.5))

    def test_pending_combinations_shrink(self):
        run = _run("A")
        variant = run.positioning.variants[0]
        assert len(run.pending_combinations()) == 2
        run.record(_react(ALICE, variant, 0.5))
        pending = run.pending_combinations()
        assert [c.participant.name for c in pending] == ["Tom"]

    def test_duplicate_wordings_collapse(self):
        run = _run("A", "A")
        assert len(run.combinations) == 2


class TestQueries:
    def test_reactions_for_participant_and_average(self):
        run = _run("A", "B")
        a, b = run.positioning.variants
        run.record(_react(ALICE, a, 0.5))
        run.record(_react(ALICE, b, 1.0))
        run.record(_react(TOM, a, 0.2))
        assert len(run.reactions_for_participant(ALICE)) == 2
        assert run.average_score_for_participant(ALICE) == pytest.approx(0.75)
        assert run.average_score_for_participant(TOM) == pytest.approx(0.2)

    def test_average_for_silent_participant_is_zero(self):
        assert _run("A").average_score_for_participant(ALICE) == 0.0

    def test_reactions_for_variant(self):
        run = _run("A", "B")
        a, b = run.positioning.variants
        run.record(_react(ALICE, a, 0.5))
        run.record(_react(TOM, b, 0.6))
        assert [r.presentation.participant.name for r in run.reactions_for_variant(b)] == ["Tom"]


class TestRender:
    def test_ranking_lists_best_average_first(self):
        run = _run("Smoking is uncool", "Winners don't smoke")
        a, b = run.positioning.variants
        for p in (ALICE, TOM):
            run.record(_react(p, a, 0.25))
            run.record(_react(p, b, 0.75))
        text = run.render()
        assert text.index("1. 0.75 - Winners don't smoke") < text.index("2. 0.25 - Smoking is uncool")
        assert "Deliverable: poster" in text
        assert "Participant Reactions" not in text

    def test_verbose_includes_quotes(self):
        run = _run("A")
        variant = run.positioning.variants[0]
        run.record(_react(ALICE, variant, 0.5, quotes=["so cringe"]))
        text = run.render(verbose=True, indent=2)
        assert "Alice: 0.50 (50%)" in text
        assert '- "so cringe"' in text
        assert text.startswith("  Focus Group Results")
