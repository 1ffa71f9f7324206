"""Welcome template — sent when a user account is created."""


class WelcomeTemplate:
    event_type = "user.created"

    @staticmethod
    def render(context: dict) -> dict:
        name = context.get("name") or "there"
        return {
            "subject": "Welcome to our store!",
            "body": (
                f"Hi {name},\n\n"
                "Your account has been created. You can now browse the catalogue "
                "and place orders.\n\n"
                "Happy shopping!"
            ),
        }
