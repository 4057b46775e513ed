"""Message texts sent by the bot."""


def welcome_message(name: str = None) -> str:
    """Reply to the Get Started button."""
    return f"Hi {name}, thanks for clicking get started!" if name else "Hi, thanks for clicking get started!"


def register_prompt_message() -> str:
    return "You have to register to be able to use this bot's features"


def registered_menu_message(name: str = None) -> str:
    greeting = f"👋 Welcome back {name}!" if name else "👋 Welcome back!"
    return f"{greeting}\n\nYour USOS account is linked. What would you like to do?"


def about_message() -> str:
    return """ℹ️ USOS bot

I link your Messenger account with USOS so you can get announcements for your course.

Type "login" to link your USOS account or "logout" to unlink it.
Use the menu to set a nickname or to send us feedback."""


def login_button_message() -> str:
    return "Click here to log in"


def logout_button_message() -> str:
    return "Click here to log out"


def account_linked_message() -> str:
    return "✅ Your USOS account has been linked successfully!"


def account_unlinked_message() -> str:
    return "Your USOS account has been unlinked successfully!"


def unsupported_input_message() -> str:
    """Fallback for input the current conversation step does not understand."""
    return "Sorry, I don't understand that. Use the menu, or type \"login\" / \"logout\"."


def unsupported_message_message() -> str:
    """Reply to stickers, images and other attachments."""
    return "Sorry, I can only read text messages."


# Nickname dialogue

def ask_nickname_message(current: str = None) -> str:
    if current:
        return f"Your nickname is \"{current}\". Do you want to change it?"
    return "You don't have a nickname yet. Do you want to set one?"


def input_nickname_message() -> str:
    return "Send me your new nickname (up to 24 letters, digits or spaces)."


def invalid_nickname_message(reason: str) -> str:
    return f"❌ That nickname can't be used: {reason}.\n\nTry again or cancel."


def nickname_saved_message(nickname: str) -> str:
    return f"✅ From now on I'll call you {nickname}."


def nickname_unchanged_message() -> str:
    return "OK, your nickname stays the same."


def nickname_deleted_message() -> str:
    return "Your nickname has been removed."


# Feedback dialogue

def feedback_prompt_message() -> str:
    return "Write your feedback in a single message (up to 500 characters)."


def feedback_empty_message() -> str:
    return "Your feedback is empty. Write a message or cancel."


def feedback_saved_message(ticket_id: int) -> str:
    return f"🎫 Thanks! Your feedback was saved as ticket #{ticket_id}."


def feedback_cancelled_message() -> str:
    return "Feedback cancelled."


# Admin broadcast

def broadcast_invalid_message() -> str:
    return (
        "❌ Broadcast needs a target first, e.g. \"@all Hello $user\".\n\n"
        "Targets: @all, @male, @female, @registered, @user:<id>, @course:<id>, @lang:<cc>\n"
        "Type \"help\" for more."
    )


def broadcast_empty_message() -> str:
    return "❌ Broadcast text is empty."


def broadcast_queued_message(target: str) -> str:
    return f"📣 Broadcast to {target} started."


def broadcast_done_message(sent: int, total: int, failed: int) -> str:
    text = f"📣 Broadcast delivered to {sent} of {total} users."
    if failed:
        text += f" {failed} failed."
    return text


def broadcast_preview_message(preview: str) -> str:
    return f"Preview:\n\n{preview}"


_HELP_TOPICS = {
    "overview": """Admin help

Any message you send is broadcast. Start it with a target:
@all, @male, @female, @registered, @user:<id>, @course:<id>, @lang:<cc>

Placeholders are filled in per recipient. More help:
help $user
help $date
help $target""",
    "$user": """$user - the recipient

$user, $user.name - nickname, or first name when no nickname is set
$user.full_name - first and last name
$user.first_name, $user.last_name, $user.nickname
$user.gender, $user.locale, $user.id
$user.is_registered, $user.is_admin - true or false
$user.usos_course""",
    "$date": """$date - the moment the message is sent, in the recipient's language

$date - e.g. Oct 17, 2026
$date.time - HH:MM
$date.day, $date.weekday, $date.weekday_short
$date.month, $date.month_short, $date.month_num
$date.year""",
    "$target": """$target - the name of the broadcast target

$target - lower case, e.g. "men"
$target.capital - first letter upper case, e.g. "Men"
Not available for @user and @course.""",
}


def help_message(topic: str = "") -> str:
    """Admin help; unknown topics get the overview."""
    return _HELP_TOPICS.get((topic or "").strip().lower(), _HELP_TOPICS["overview"])
