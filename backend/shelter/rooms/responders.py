# shelter/rooms/responders.py
"""
봇 답장 생성기 자리. OWNER_RESPONDER 설정으로 (room, history) -> str | None 를 주입한다.
history: [{"role": "user" | "bot", "text": str}, ...] (오래된 순)
"""
FALLBACK_REPLY = "I see. If you like, tell me a little more."

_ACKS = (
    "I see.",
    "That makes sense.",
    "That sounds like a lot.",
    "Sounds nice.",
)


def canned_reply(room, history):
    user_turns = [h for h in history if h["role"] == "user"]
    if not user_turns:
        return None
    ack = _ACKS[(len(user_turns) - 1) % len(_ACKS)]
    return f"{ack} What happened next?"
