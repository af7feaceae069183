"""NiceGUI chat interface with streamed answers and clickable citations."""

import os
import re

from nicegui import ui

from citechat.models.schemas import SearchMode
from citechat.streaming.short_ids import ShortIdTable
from citechat.ui.citations import CitationRef, CitationSegments, PassageRef
from citechat.ui.client import INTERRUPTED_MESSAGE, stream_chat_response
from citechat.ui.session import ChatSession, ConversationTurn


def markdown_to_html(text: str) -> str:
    """Convert the markdown subset models produce to HTML.

    Supports: code blocks, inline code, bold, italic, line breaks.
    """
    text = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    text = re.sub(
        r"```(\w*)\n?([\s\S]*?)```",
        r'<pre class="bg-gray-800 text-gray-100 rounded-lg p-3 my-2 overflow-x-auto text-xs"><code>\2</code></pre>',
        text,
    )
    text = re.sub(r"`([^`]+)`", r'<code class="bg-gray-200 text-pink-600 px-1 rounded text-xs">\1</code>', text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"\*([^*\n]+)\*", r"<em>\1</em>", text)
    return text.replace("\n", "<br>")


CUSTOM_CSS = """
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600&display=swap"
      rel="stylesheet">
<style>
    * { font-family: 'Inter', sans-serif; }
    body { background: #f5f5f5; min-height: 100vh; }

    .app-container {
        background: white;
        border-radius: 12px;
        box-shadow: 0 2px 8px rgba(0, 0, 0, 0.1);
        overflow: hidden;
    }
    .header { background: linear-gradient(135deg, #2563eb 0%, #0f766e 100%); }

    .message-user {
        background: #2563eb;
        color: white;
        border-radius: 18px 18px 4px 18px;
    }
    .message-assistant {
        background: #f3f4f6;
        color: #1f2937;
        border-radius: 18px 18px 18px 4px;
    }
    .message-error { background: #fef2f2; color: #991b1b; }

    .segment { display: inline; }
    .ref-citation { background: #dbeafe !important; color: #1d4ed8 !important; }
    .ref-passage { background: #dcfce7 !important; color: #15803d !important; }

    .typing-dot {
        width: 8px; height: 8px;
        background: #2563eb;
        border-radius: 50%;
        animation: bounce 1.4s infinite ease-in-out;
    }
    .typing-dot:nth-child(2) { animation-delay: 0.2s; }
    .typing-dot:nth-child(3) { animation-delay: 0.4s; }
    @keyframes bounce {
        0%, 60%, 100% { transform: translateY(0); }
        30% { transform: translateY(-6px); }
    }
</style>
"""


def show_reference_dialog(reference: CitationRef | PassageRef) -> None:
    """Open a dialog with the full text of a cited passage."""
    if isinstance(reference, CitationRef):
        title = f"Citation [{reference.number}]"
        text = reference.citation.text
        document_id = reference.citation.document_id
        score = reference.citation.score
        metadata = reference.citation.metadata or {}
    else:
        title = f"Source {reference.short_id}"
        text = reference.passage.text
        document_id = reference.passage.document_id
        score = reference.passage.score
        metadata = reference.passage.metadata

    with ui.dialog() as dialog, ui.card().classes("w-full max-w-2xl"):
        ui.label(title).classes("text-lg font-semibold")
        ui.label(f"Document {document_id} | relevance {score:.2f}").classes("text-xs text-gray-500")
        with ui.scroll_area().classes("h-64 w-full"):
            ui.label(text).classes("text-sm whitespace-pre-wrap")
        if title_meta := metadata.get("title"):
            ui.label(str(title_meta)).classes("text-xs text-gray-500")
        ui.button("Close", on_click=dialog.close).props("flat")
    dialog.open()


def render_segments(segments: CitationSegments) -> None:
    """Render answer text with each resolved marker as a clickable chip."""
    with ui.element("div").classes("text-sm leading-relaxed"):
        for segment in segments:
            match segment:
                case str():
                    ui.html(markdown_to_html(segment), sanitize=False).classes("segment")
                case CitationRef() | PassageRef():
                    css = "ref-citation" if isinstance(segment, CitationRef) else "ref-passage"
                    ui.button(
                        segment.label,
                        on_click=lambda _, ref=segment: show_reference_dialog(ref),
                    ).props("dense unelevated no-caps size=sm").classes(f"{css} mx-0.5 px-1")


def render_sources(table: ShortIdTable) -> None:
    """Collapsible list of the passages retrieved for one answer."""
    if not table:
        return
    with ui.expansion(f"Sources ({len(table)})", icon="menu_book").classes("w-full text-xs"):
        for number, (short_id, passage) in enumerate(table.items(), start=1):
            reference = PassageRef(label=f"[{short_id}]", short_id=short_id, passage=passage)
            with ui.row().classes("w-full items-start gap-2 no-wrap"):
                ui.button(
                    f"[{number}] {short_id}",
                    on_click=lambda _, ref=reference: show_reference_dialog(ref),
                ).props("dense flat no-caps size=sm").classes("ref-passage")
                ui.label(passage.text[:160]).classes("text-xs text-gray-600")


@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    session = ChatSession()

    messages_container: ui.column
    input_field: ui.textarea
    send_btn: ui.button

    def render_avatar(is_user: bool) -> None:
        css = "bg-blue-600" if is_user else "bg-gray-500"
        with ui.element("div").classes(f"w-9 h-9 rounded-full flex items-center justify-center {css}"):
            ui.icon("person" if is_user else "smart_toy").classes("text-white text-lg")

    def render_turn(turn: ConversationTurn) -> None:
        is_user = turn.role == "user"
        align = "justify-end" if is_user else "justify-start"
        bubble = "message-user" if is_user else "message-assistant"
        if turn.error:
            bubble += " message-error"

        with ui.row().classes(f"w-full {align} gap-3 items-end"):
            if not is_user:
                render_avatar(False)
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if is_user or turn.error:
                        ui.label(turn.content).classes("text-sm whitespace-pre-wrap")
                    else:
                        render_segments(turn.segments())
                if not is_user:
                    render_sources(turn.resolved_passages)
                ui.label(turn.time).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )
            if is_user:
                render_avatar(True)

    @ui.refreshable
    def pending_response() -> None:
        if not session.is_streaming:
            return
        with ui.row().classes("w-full justify-start gap-3 items-end"):
            render_avatar(False)
            with ui.element("div").classes("message-assistant px-4 py-3 max-w-[75%]"):
                if session.pending_text:
                    render_segments(session.pending_segments())
                else:
                    with ui.row().classes("gap-1"):
                        for _ in range(3):
                            ui.element("div").classes("typing-dot")

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            if not session.turns:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("forum").classes("text-5xl text-gray-300")
                    ui.label("Ask a question about your documents").classes("text-lg text-gray-400")
            for turn in session.turns:
                render_turn(turn)
            pending_response()

    async def send_message() -> None:
        text = input_field.value.strip()
        if not text or session.is_streaming:
            return

        input_field.value = ""
        messages = session.begin_request(text)
        send_btn.disable()
        refresh_messages()

        def on_search_results(table: ShortIdTable) -> None:
            session.receive_search_results(table)

        def on_delta(delta: str) -> None:
            session.append_delta(delta)
            pending_response.refresh()

        def on_complete() -> None:
            session.complete_response()
            send_btn.enable()
            refresh_messages()

        def on_error(error: str) -> None:
            session.fail_response(error)
            send_btn.enable()
            refresh_messages()
            ui.notify(error, type="negative")

        try:
            await stream_chat_response(
                messages,
                session.search_mode,
                on_search_results,
                on_delta,
                on_complete,
                on_error,
            )
        finally:
            if session.abandon_response(INTERRUPTED_MESSAGE) is not None:
                send_btn.enable()
                refresh_messages()

    def set_search_mode(value: str) -> None:
        session.search_mode = SearchMode(value)

    def new_chat() -> None:
        if session.is_streaming:
            return
        session.clear()
        refresh_messages()

    with (
        ui.element("div").classes("w-full min-h-screen p-4 md:p-8"),
        ui.column().classes("w-full max-w-3xl mx-auto app-container").style(
            "height: calc(100vh - 4rem)"
        ),
    ):
        with ui.row().classes("w-full header px-5 py-4 items-center justify-between"):
            with ui.row().classes("items-center gap-3"):
                ui.icon("auto_stories").classes("text-white text-3xl")
                ui.label("Document Assistant").classes("text-lg font-semibold text-white")
            with ui.row().classes("items-center gap-3"):
                ui.toggle(
                    {SearchMode.RAG.value: "RAG", SearchMode.AGENT.value: "Agent"},
                    value=session.search_mode.value,
                    on_change=lambda e: set_search_mode(e.value),
                ).props("dense rounded color=white text-color=primary toggle-color=teal")
                ui.button(icon="add", on_click=new_chat).props("flat round color=white")

        with (
            ui.scroll_area().classes("flex-grow w-full bg-gray-50"),
            ui.column().classes("w-full p-5"),
        ):
            messages_container = ui.column().classes("w-full gap-4")
            refresh_messages()

        with ui.row().classes("w-full p-4 gap-3 items-end bg-white border-t"):
            input_field = (
                ui.textarea(placeholder="Ask about your documents...")
                .props("autogrow outlined dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = ui.button(icon="send", on_click=send_message).props("round unelevated color=primary")


def main() -> None:
    """Serve the chat page alone; the API runs elsewhere (see API_BASE_URL)."""
    ui.run(
        title="Document Assistant",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("UI_PORT", "8080")),
        reload=False,
    )


if __name__ == "__main__":
    main()
