"""Testes do mapeamento outcome → ação final."""

from __future__ import annotations

import pytest

from skiddly.application.action_mapper import (
    OUTCOME_ACTIONS,
    is_terminal_action,
    map_to_final_action,
    requires_notification,
)
from skiddly.domain.enums import CallOutcome, FinalAction
from skiddly.domain.errors import UnreachableOutcomeError


class TestMapToFinalAction:
    """Testes para map_to_final_action."""

    @pytest.mark.parametrize("outcome", list(CallOutcome))
    def test_every_outcome_has_an_action(self, outcome: CallOutcome) -> None:
        """A tabela cobre todos os outcomes."""
        assert isinstance(map_to_final_action(outcome), FinalAction)

    @pytest.mark.parametrize(
        ("outcome", "action"),
        [
            (CallOutcome.COMPLETED_PURCHASE, FinalAction.ORDER_COMPLETED),
            (CallOutcome.DO_NOT_CALL_REQUEST, FinalAction.MARKED_DNC),
            (CallOutcome.ABUSIVE_LANGUAGE, FinalAction.MARKED_DNC),
            (CallOutcome.RESCHEDULE_REQUEST, FinalAction.RESCHEDULE_CALL),
            (CallOutcome.WANTS_DISCOUNT, FinalAction.SMS_SENT_WITH_DISCOUNT_CODE),
            (CallOutcome.WANTS_FREE_SHIPPING, FinalAction.SMS_SENT_WITH_DISCOUNT_CODE),
            (CallOutcome.CUSTOMER_BUSY, FinalAction.SCHEDULED_RETRY),
            (CallOutcome.NOT_INTERESTED, FinalAction.NO_ACTION_REQUIRED),
            (CallOutcome.WILL_THINK_ABOUT_IT, FinalAction.NO_ACTION_REQUIRED),
            (CallOutcome.TECHNICAL_ISSUES, FinalAction.NO_ACTION_REQUIRED),
            (CallOutcome.WRONG_PERSON, FinalAction.NO_ACTION_REQUIRED),
        ],
    )
    def test_known_mappings(self, outcome: CallOutcome, action: FinalAction) -> None:
        assert map_to_final_action(outcome) == action

    def test_glossary_values(self) -> None:
        """Enum fechado com exatamente os onze outcomes do contrato."""
        assert {o.value for o in CallOutcome} == {
            "completed_purchase",
            "customer_busy",
            "not_interested",
            "wants_discount",
            "wants_free_shipping",
            "reschedule_request",
            "abusive_language",
            "do_not_call_request",
            "will_think_about_it",
            "technical_issues",
            "wrong_person",
        }

    def test_unknown_outcome_raises(self) -> None:
        """Valor fora do enum é bug de programação."""
        with pytest.raises(UnreachableOutcomeError):
            map_to_final_action("made_up_outcome")  # type: ignore[arg-type]

    def test_table_is_exhaustive(self) -> None:
        assert set(OUTCOME_ACTIONS) == set(CallOutcome)


class TestActionClassification:
    """Testes de ações terminais e com notificação."""

    def test_terminal_actions(self) -> None:
        assert is_terminal_action(FinalAction.ORDER_COMPLETED)
        assert is_terminal_action(FinalAction.MARKED_DNC)
        assert is_terminal_action(FinalAction.NO_ACTION_REQUIRED)
        assert not is_terminal_action(FinalAction.RESCHEDULE_CALL)
        assert not is_terminal_action(FinalAction.SCHEDULED_RETRY)
        assert not is_terminal_action(FinalAction.SMS_SENT_WITH_DISCOUNT_CODE)

    def test_notification_actions(self) -> None:
        assert requires_notification(FinalAction.SMS_SENT_WITH_DISCOUNT_CODE)
        assert requires_notification(FinalAction.MARKED_DNC)
        assert not requires_notification(FinalAction.SCHEDULED_RETRY)
