"""
Payload Factory Tests

Text and template variants both carry the scheduling link.
"""

from relay.notifier import NotificationPayload, PayloadFactory

LINK = "https://calendly.com/cabinet"


class TestTextMode:

    def test_missed_call_text_contains_link(self):
        payload = PayloadFactory(scheduling_link=LINK).missed_call()
        assert payload.kind == "text"
        assert LINK in payload.text

    def test_reminder_differs_from_first_notification(self):
        factory = PayloadFactory(scheduling_link=LINK)
        assert factory.reminder() != factory.missed_call()
        assert LINK in factory.reminder().text

    def test_simulation_is_marked(self):
        payload = PayloadFactory(scheduling_link=LINK).simulation()
        assert "simulation" in payload.text
        assert LINK in payload.text

    def test_custom_texts(self):
        factory = PayloadFactory(scheduling_link=LINK, reminder_text="Book: {link}")
        assert factory.reminder() == NotificationPayload.from_text(f"Book: {LINK}")


class TestTemplateMode:

    def test_link_is_sole_parameter(self):
        factory = PayloadFactory(
            scheduling_link=LINK,
            mode="template",
            template_name="rappel_appel",
            template_language="fr",
        )
        for payload in (factory.missed_call(), factory.reminder()):
            assert payload.kind == "template"
            assert payload.template_name == "rappel_appel"
            assert payload.template_language == "fr"
            assert payload.parameters == [LINK]

    def test_simulation_and_auto_reply_stay_text(self):
        factory = PayloadFactory(scheduling_link=LINK, mode="template")
        assert factory.simulation().kind == "text"
        assert factory.auto_reply().kind == "text"


class TestAutoReply:

    def test_disabled_when_empty(self):
        assert PayloadFactory(scheduling_link=LINK, auto_reply_text="").auto_reply() is None

    def test_enabled_by_default(self):
        assert PayloadFactory(scheduling_link=LINK).auto_reply().text
