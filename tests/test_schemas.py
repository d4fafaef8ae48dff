"""Tests for submission payload validation."""

import uuid

import pytest
from pydantic import ValidationError

from garden.repository import StoredAnswer
from garden.schemas import AnswerInput, SubmitAnswersRequest


def payload(*answers):
    return {"answers": list(answers)}


@pytest.mark.unit
class TestAnswerInput:

    def test_choice_answer(self):
        answer = AnswerInput.model_validate(
            {"questionId": str(uuid.uuid4()), "type": 1, "selectedOption": "Indoor"}
        )
        assert answer.selected_option == "Indoor"

    def test_address_answer(self):
        answer = AnswerInput.model_validate(
            {
                "questionId": str(uuid.uuid4()),
                "type": 2,
                "selectedAddress": {"state": "SP", "city": "São Paulo", "zipCode": "01000-000"},
            }
        )
        assert answer.selected_address.zip_code == "01000-000"

    @pytest.mark.parametrize(
        "body",
        [
            {"type": 1},
            {"type": 1, "selectedOption": ""},
            {"type": 1, "selectedOption": "Indoor", "selectedAddress": {"state": "SP", "city": "SP"}},
            {"type": 2},
            {"type": 2, "selectedAddress": {"state": "SP"}},
            {"type": 2, "selectedAddress": {"state": " ", "city": "Santos"}},
            {"type": 2, "selectedAddress": {"state": "SP", "city": "Santos"}, "selectedOption": "x"},
            {"type": 2, "selectedAddress": {"state": "SP", "city": "Santos", "planet": "Earth"}},
            {"type": 3, "selectedOption": "Indoor"},
            {"type": 1, "selectedOption": "Indoor", "extra": True},
        ],
    )
    def test_rejects_malformed(self, body):
        with pytest.raises(ValidationError):
            AnswerInput.model_validate({"questionId": str(uuid.uuid4()), **body})


@pytest.mark.unit
class TestSubmitAnswersRequest:

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            SubmitAnswersRequest.model_validate(payload())

    def test_rejects_duplicate_questions(self):
        qid = str(uuid.uuid4())
        with pytest.raises(ValidationError, match="Duplicate answer"):
            SubmitAnswersRequest.model_validate(
                payload(
                    {"questionId": qid, "type": 1, "selectedOption": "Indoor"},
                    {"questionId": qid, "type": 1, "selectedOption": "Outdoor"},
                )
            )


@pytest.mark.unit
def test_stored_answer_from_address_input():
    answer = AnswerInput.model_validate(
        {"questionId": str(uuid.uuid4()), "type": 2, "selectedAddress": {"state": "SP", "city": "Santos"}}
    )
    stored = StoredAnswer.from_input(answer)

    assert stored.selected_option == "SP / Santos"
    assert stored.selected_address == {"state": "SP", "city": "Santos"}
    assert stored.state == "SP"
    assert stored.city == "Santos"
