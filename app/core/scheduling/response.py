"""
Reply Formatter.

Fixed Japanese templates for every reply the assistant sends. Pure
presentation: callers decide which template applies.
"""

from typing import Optional, Sequence

from app.core.scheduling.store import Appointment


# Accepted words for the edit/delete choice, shown back in prompts
EDIT_WORD = "編集"
DELETE_WORD = "削除"

NO_APPOINTMENTS = "予定はありません。"
INVALID_NUMBER = "正しい番号を送ってください"
INVALID_DATE = "日付が不正です"


def _when(appointment: Appointment) -> str:
    """Date with the time appended when there is one."""
    if appointment.time:
        return f"{appointment.date} {appointment.time}"
    return appointment.date


class ReplyFormatter:
    """Renders domain results into reply text."""

    # === Confirmations ===

    def created(self, appointment: Appointment) -> str:
        """Confirmation after a new appointment is stored."""
        return f"予定を登録しました！\n📅 {_when(appointment)}\n📝 {appointment.content}"

    def deleted(self, appointment: Appointment) -> str:
        """Confirmation with the snapshot of the deleted appointment."""
        return f"削除しました ✅\n📅 {_when(appointment)}\n📝 {appointment.content}"

    def edited(self, appointment: Appointment) -> str:
        """Confirmation with the appointment as it is after the edit."""
        return f"変更を保存しました ✅\n📅 {_when(appointment)}\n📝 {appointment.content}"

    # === Listing ===

    def listing(self, appointments: Sequence[Appointment]) -> str:
        """Numbered list, 1-based in the given order, plus a selection hint.

        Falls back to the empty notice when there is nothing to list.
        """
        if not appointments:
            return self.no_appointments()

        lines = ["📅 予定リスト"]
        for index, appointment in enumerate(appointments, start=1):
            lines.append(f"{index}. {_when(appointment)} {appointment.content}")
        lines.append("")
        lines.append("番号を送って編集・削除したい予定を選択してください")
        return "\n".join(lines)

    def no_appointments(self) -> str:
        return NO_APPOINTMENTS

    # === Dialogue prompts ===

    def selected(self, appointment: Appointment) -> str:
        """Echo the picked appointment and ask edit or delete."""
        return (
            f"予定「{_when(appointment)} {appointment.content}」\n"
            f"{EDIT_WORD}しますか？{DELETE_WORD}しますか？"
        )

    def action_prompt(self) -> str:
        return f"「{EDIT_WORD}」か「{DELETE_WORD}」を送ってください"

    def field_prompt(self) -> str:
        return "何を編集しますか？ 日付 / 時間 / 内容 を送ってください"

    # === Errors ===

    def invalid_number(self) -> str:
        return INVALID_NUMBER

    def invalid_date(self) -> str:
        return INVALID_DATE

    def selection_missing(self) -> str:
        return "選択した予定が見つかりません。もう一度予定を表示してください。"

    def error(self, detail: Optional[str] = None) -> str:
        """Generic failure notice; detail is appended in development only."""
        message = "エラーが発生しました。しばらくしてからもう一度お試しください。"
        if detail:
            message += f"\n({detail})"
        return message


# Singleton
_formatter: Optional[ReplyFormatter] = None


def get_reply_formatter() -> ReplyFormatter:
    """Get singleton ReplyFormatter."""
    global _formatter
    if _formatter is None:
        _formatter = ReplyFormatter()
    return _formatter
