"""
Case chat tests.

Covers:
  1. Posting and listing messages (window, priority filter)
  2. Validation of user messages
  3. Unread count and mark-read per user
  4. System messages posted after workflow commits
"""

from __future__ import annotations

import uuid

import pytest
from django.db import transaction

from cases.models import CaseMessage, MessagePriority, MessageType, TimelineEvent
from cases.services import CaseMessageService, CaseWorkflowService


def _messages_url(case):
    return f"/api/cases/{case.case_id}/messages/"


@pytest.fixture()
def chat(create_user, report_case):
    reporter = create_user(user_type="reporter", first_name="Ana", last_name="Silva")
    helper = create_user(user_type="volunteer", first_name="Tom", last_name="Berg")
    case = report_case(reporter=reporter)
    return {"reporter": reporter, "helper": helper, "case": case}


@pytest.mark.django_db
class TestPostAndList:

    def test_post_then_list_oldest_first(self, auth_client, chat):
        url = _messages_url(chat["case"])
        reporter = auth_client(chat["reporter"])
        helper = auth_client(chat["helper"])

        resp = reporter.post(url, {"content": "  The dog is behind the blue gate.  "}, format="json")
        assert resp.status_code == 201, resp.data
        assert resp.data["content"] == "The dog is behind the blue gate."
        assert resp.data["message_type"] == MessageType.TEXT
        assert resp.data["priority"] == MessagePriority.NORMAL
        assert resp.data["sender"]["id"] == chat["reporter"].pk
        assert resp.data["is_read"] is True

        helper.post(url, {"content": "On my way, ten minutes out.", "priority": "urgent"}, format="json")

        resp = reporter.get(url)
        assert resp.status_code == 200
        assert [m["content"] for m in resp.data] == [
            "The dog is behind the blue gate.",
            "On my way, ten minutes out.",
        ]
        assert [m["is_read"] for m in resp.data] == [True, False]

    def test_window_returns_newest_messages(self, auth_client, chat):
        for n in range(5):
            CaseMessageService.send_message(
                chat["case"].case_id, chat["reporter"], {"content": f"update {n}"},
            )
        client = auth_client(chat["helper"])

        resp = client.get(_messages_url(chat["case"]), {"limit": 2})
        assert [m["content"] for m in resp.data] == ["update 3", "update 4"]

        resp = client.get(_messages_url(chat["case"]), {"limit": 2, "offset": 2})
        assert [m["content"] for m in resp.data] == ["update 1", "update 2"]

    def test_priority_filter(self, auth_client, chat):
        case_id = chat["case"].case_id
        CaseMessageService.send_message(case_id, chat["helper"], {"content": "All calm"})
        CaseMessageService.send_message(
            case_id, chat["helper"], {"content": "Need a carrier now", "priority": "urgent"},
        )

        resp = auth_client(chat["reporter"]).get(_messages_url(chat["case"]), {"priority": "urgent"})

        assert [m["content"] for m in resp.data] == ["Need a carrier now"]

    def test_message_does_not_touch_workflow_state(self, chat):
        CaseMessageService.send_message(chat["case"].case_id, chat["helper"], {"content": "Hi"})

        chat["case"].refresh_from_db()
        assert chat["case"].version == 0
        assert TimelineEvent.objects.filter(case=chat["case"]).count() == 1

    def test_unknown_case_is_404(self, auth_client, chat):
        resp = auth_client(chat["helper"]).get(f"/api/cases/{uuid.uuid4()}/messages/")
        assert resp.status_code == 404

    def test_requires_authentication(self, api_client, chat):
        resp = api_client.get(_messages_url(chat["case"]))
        assert resp.status_code == 401


@pytest.mark.django_db
class TestValidation:

    @pytest.mark.parametrize("payload", [
        {"content": ""},
        {"content": "   "},
        {"content": "x" * 2001},
        {"content": "Hello", "message_type": "system"},
        {"content": "Photo of the wound", "message_type": "image"},
        {"content": "Hello", "priority": "panic"},
    ])
    def test_bad_payload_is_rejected(self, auth_client, chat, payload):
        resp = auth_client(chat["helper"]).post(_messages_url(chat["case"]), payload, format="json")

        assert resp.status_code == 400
        assert not CaseMessage.objects.exists()

    def test_image_message_with_url(self, auth_client, chat):
        resp = auth_client(chat["helper"]).post(
            _messages_url(chat["case"]),
            {
                "content": "Photo of the wound",
                "message_type": "image",
                "image_url": "https://cdn.example.com/wound.jpg",
            },
            format="json",
        )

        assert resp.status_code == 201, resp.data
        assert resp.data["image_url"] == "https://cdn.example.com/wound.jpg"


@pytest.mark.django_db
class TestReadState:

    def test_unread_count_skips_own_messages(self, auth_client, chat):
        case_id = chat["case"].case_id
        CaseMessageService.send_message(case_id, chat["reporter"], {"content": "one"})
        CaseMessageService.send_message(case_id, chat["reporter"], {"content": "two"})
        CaseMessageService.send_message(case_id, chat["helper"], {"content": "three"})

        url = f"{_messages_url(chat['case'])}unread-count/"
        assert auth_client(chat["helper"]).get(url).data == {"count": 2}
        assert auth_client(chat["reporter"]).get(url).data == {"count": 1}

    def test_mark_read_is_per_user(self, auth_client, create_user, chat):
        case_id = chat["case"].case_id
        other = create_user(user_type="ngo")
        CaseMessageService.send_message(case_id, chat["reporter"], {"content": "one"})
        CaseMessageService.send_message(case_id, chat["reporter"], {"content": "two"})

        client = auth_client(chat["helper"])
        resp = client.post(f"{_messages_url(chat['case'])}mark-read/", {}, format="json")
        assert resp.status_code == 200
        assert resp.data == {"marked_read": 2}

        assert CaseMessageService.unread_count(case_id, chat["helper"]) == 0
        assert CaseMessageService.unread_count(case_id, other) == 2
        assert all(m["is_read"] for m in client.get(_messages_url(chat["case"])).data)

        # Nothing left to mark on a second call.
        assert CaseMessageService.mark_all_read(case_id, chat["helper"]) == 0

    def test_unread_count_unknown_case_is_404(self, auth_client, chat):
        resp = auth_client(chat["helper"]).get(f"/api/cases/{uuid.uuid4()}/messages/unread-count/")
        assert resp.status_code == 404


@pytest.mark.django_db
class TestSystemMessages:

    def test_claim_posts_system_message_after_commit(
        self, chat, django_capture_on_commit_callbacks,
    ):
        case = chat["case"]

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            CaseWorkflowService.claim(case.case_id, chat["helper"])
        assert not CaseMessage.objects.exists()

        for callback in callbacks:
            callback()

        message = CaseMessage.objects.get(case=case)
        assert message.message_type == MessageType.SYSTEM
        assert message.sender is None
        assert message.content == "Tom Berg joined the rescue."
        assert CaseMessageService.unread_count(case.case_id, chat["reporter"]) == 1

    def test_transfer_and_rejection_post_urgent_messages(
        self, chat, django_capture_on_commit_callbacks,
    ):
        case_id = chat["case"].case_id
        helper, reporter = chat["helper"], chat["reporter"]

        with django_capture_on_commit_callbacks(execute=True):
            CaseWorkflowService.claim(case_id, helper)
            CaseWorkflowService.begin_work(case_id, helper)
            CaseWorkflowService.transfer(case_id, helper, reason="Needs a climbing team")
            CaseWorkflowService.claim(case_id, helper)
            CaseWorkflowService.resolve(case_id, helper)
            CaseWorkflowService.reporter_reject(case_id, reporter, reason="Cat is still on the roof")

        urgent = CaseMessage.objects.filter(priority=MessagePriority.URGENT)
        assert [m.content for m in urgent] == [
            "Case released back to the open pool: Needs a climbing team",
            "Reporter rejected the resolution: Cat is still on the roof. "
            "The case is back with its helpers.",
        ]
        assert CaseMessage.objects.filter(message_type=MessageType.SYSTEM).count() == 4

    def test_rolled_back_claim_posts_nothing(self, chat, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            with pytest.raises(RuntimeError):
                with transaction.atomic():
                    CaseWorkflowService.claim(chat["case"].case_id, chat["helper"])
                    raise RuntimeError("request aborted")

        assert not CaseMessage.objects.exists()
