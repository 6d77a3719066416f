"""
Floating chat window — Pexi Ai.

Layout
------
┌──────────────────────────────────────────────┐
│ Pexi Ai                      [⟲] [–] [□] [✕] │  ← header (drag handle)
├──────────────────────────────────────────────┤
│                                              │
│   Chat display (scrollable)                  │  ← chat_frame
│                                              │
├──────────────────────────────────────────────┤
│  ⚠ error banner                              │  ← hidden when empty
│  [🖼 photo.png ✕]                             │  ← hidden when empty
├──────────────────────────────────────────────┤
│ [📎] │ Input text area…              │ [Send] │  ← input_frame
│                                            ◢ │  ← resize grip
└──────────────────────────────────────────────┘

The window is borderless, so moving and resizing are implemented here and
tracked by :class:`~pexi.geometry.GeometryController`.  The network call runs
on a daemon thread; its result is handed back through a queue that the Tk
thread drains, so every state mutation happens on the UI thread.
"""

import logging
import math
import queue
import threading
import tkinter as tk
from tkinter import filedialog, scrolledtext

from .chat_session import ChatSession, PendingRequest
from .composer import InputComposer, is_submit_keypress
from .config import PexiConfig
from .file_handler import FILE_TYPES
from .gemini_api import GeminiClient
from .geometry import (
    MIN_HEIGHT,
    MIN_WIDTH,
    GeometryController,
    Point,
    Viewport,
    WindowGeometry,
)
from .messages import ContentPart, Role, Turn

log = logging.getLogger("pexi")

APP_TITLE = "Pexi Ai"

#: Inline images wider than this are shrunk by an integer factor.
MAX_IMAGE_WIDTH = 320

# Palette
_BG = "#0f172a"
_HEADER_BG = "#1e293b"
_INPUT_BG = "#1e293b"
_BORDER = "#334155"
_FG = "#e2e8f0"
_MUTED = "#94a3b8"
_ACCENT = "#2563eb"
_ERROR = "#f87171"


class PexiChatApp:
    """Borderless, draggable chat window."""

    def __init__(self, config: PexiConfig | None = None) -> None:
        self._config = config or PexiConfig.from_env()

        self.root = tk.Tk()
        self.root.title(APP_TITLE)
        self.root.overrideredirect(True)
        self.root.attributes("-topmost", True)
        self.root.minsize(MIN_WIDTH, MIN_HEIGHT)
        self.root.configure(bg=_BORDER)

        client = GeminiClient(
            self._config.api_key,
            model=self._config.model,
            base_url=self._config.base_url,
        )
        self._session = ChatSession(client)
        self._composer = InputComposer()
        self._controller = GeometryController(self._current_viewport())
        self._queue: queue.Queue = queue.Queue()

        # PhotoImage objects must stay referenced or Tk blanks them.
        self._photos: dict[tuple[str, int], tk.PhotoImage | None] = {}
        self._grip_start: tuple[int, int, int, int] | None = None
        self._unsubscribers: list = []
        self._closed = False

        self._build_header()
        self._build_body()
        self._build_chat_area()
        self._build_banner()
        self._build_attach_area()
        self._build_input_area()
        self._build_grip()

        self._unsubscribers.append(
            self._controller.subscribe(self._apply_geometry))
        self._unsubscribers.append(self._session.subscribe(self._render))

        self._apply_geometry(self._controller.geometry)
        self.root.update_idletasks()
        self._attach_listeners()
        self._render()
        if not self._config.has_api_key:
            self._session.set_error(
                "No API key configured. Set GEMINI_API_KEY and restart."
            )
        self._pump_queue()

    # ------------------------------------------------------------------
    # UI construction
    # ------------------------------------------------------------------

    def _build_header(self) -> None:
        header = tk.Frame(self.root, bg=_HEADER_BG, cursor="fleur")
        header.pack(fill=tk.X, side=tk.TOP, padx=1, pady=(1, 0))
        self._header = header

        tk.Label(header, text=APP_TITLE, bg=_HEADER_BG, fg=_FG,
                 font=("", 10, "bold")).pack(side=tk.LEFT, padx=(12, 0),
                                             pady=6)

        buttons = tk.Frame(header, bg=_HEADER_BG)
        buttons.pack(side=tk.RIGHT, padx=4)
        for text, cmd, active in [
            ("⟲", self._reset_window,    "#334155"),
            ("–", self._minimize,        "#334155"),
            ("□", self._toggle_maximize, "#334155"),
            ("✕", self._on_close,        "#ef4444"),
        ]:
            tk.Button(
                buttons, text=text, command=cmd, width=3,
                bg=_HEADER_BG, fg=_FG, activebackground=active,
                activeforeground="#ffffff", relief=tk.FLAT, bd=0,
                cursor="hand2",
            ).pack(side=tk.LEFT, padx=1, pady=2)

        # Every header widget starts a drag, except the buttons (checked in
        # the handler) which keep their normal click behaviour.
        self._bind_tree(header, "<ButtonPress-1>", self._on_header_press)

    def _build_body(self) -> None:
        self._body = tk.Frame(self.root, bg=_BG)
        self._body.pack(fill=tk.BOTH, expand=True, padx=1, pady=(0, 1))

    def _build_chat_area(self) -> None:
        self._chat = scrolledtext.ScrolledText(
            self._body, wrap=tk.WORD, state=tk.DISABLED, height=1,
            font=("", 10), bg=_BG, fg=_FG, relief=tk.FLAT, borderwidth=0,
            padx=12, pady=8, highlightthickness=0,
        )
        self._chat.pack(fill=tk.BOTH, expand=True)

        self._chat.tag_config("welcome_title", foreground=_FG,
                              font=("", 16, "bold"), justify=tk.CENTER,
                              spacing1=60)
        self._chat.tag_config("welcome_body", foreground=_MUTED,
                              justify=tk.CENTER)
        self._chat.tag_config("user_lbl", foreground="#60a5fa",
                              font=("", 10, "bold"), justify=tk.RIGHT)
        self._chat.tag_config("user_msg", foreground=_FG,
                              justify=tk.RIGHT, lmargin1=80, lmargin2=80)
        self._chat.tag_config("asst_lbl", foreground="#a78bfa",
                              font=("", 10, "bold"))
        self._chat.tag_config("asst_msg", foreground=_FG, rmargin=80)
        self._chat.tag_config("err_msg", foreground=_ERROR, rmargin=80)
        self._chat.tag_config("sys_msg", foreground=_MUTED,
                              font=("", 9, "italic"))

    def _build_banner(self) -> None:
        """Build the (initially hidden) error banner."""
        self._banner = tk.Label(
            self._body, text="", bg=_BG, fg=_ERROR, font=("", 9),
            anchor=tk.CENTER, wraplength=600,
        )

    def _build_attach_area(self) -> None:
        """Build the (initially hidden) attachment chip."""
        self._attach_outer = tk.Frame(self._body, bg=_BG)
        self._attach_label = tk.Label(
            self._attach_outer, text="", bg=_INPUT_BG, fg=_FG, font=("", 9),
            anchor=tk.W, padx=8, pady=4,
        )
        self._attach_label.pack(side=tk.LEFT, fill=tk.X, expand=True)
        tk.Button(
            self._attach_outer, text="✕", width=2, relief=tk.FLAT,
            bg=_INPUT_BG, fg=_MUTED, bd=0, cursor="hand2",
            command=self._remove_attachment,
        ).pack(side=tk.LEFT)

    def _build_input_area(self) -> None:
        outer = tk.Frame(self._body, bg=_INPUT_BG, padx=6, pady=6)
        outer.pack(fill=tk.X, side=tk.BOTTOM, padx=10, pady=(4, 14))
        self._input_frame = outer  # anchor for banner / attachment packing

        tk.Button(
            outer, text="📎", width=3, relief=tk.FLAT, bg=_INPUT_BG,
            fg=_MUTED, bd=0, cursor="hand2", command=self._attach_file,
        ).grid(row=0, column=0, sticky="s", padx=(0, 6))

        self._input = tk.Text(
            outer, height=3, wrap=tk.WORD, font=("", 10),
            bg=_INPUT_BG, fg=_FG, insertbackground=_FG,
            relief=tk.FLAT, borderwidth=0, highlightthickness=0,
        )
        self._input.grid(row=0, column=1, sticky="nsew")
        self._input.bind("<Return>", self._on_enter_key)
        self._input.bind("<KP_Enter>", self._on_enter_key)
        # Shift+Return → literal newline (handled by default)

        self._send_btn = tk.Button(
            outer, text="Send ➤", width=8, relief=tk.FLAT, bg=_ACCENT,
            fg="#ffffff", activebackground="#3b82f6", bd=0, cursor="hand2",
            command=self._send,
        )
        self._send_btn.grid(row=0, column=2, sticky="s", padx=(6, 0))

        outer.columnconfigure(1, weight=1)

    def _build_grip(self) -> None:
        grip = tk.Label(self.root, text="◢", bg=_BG, fg=_BORDER,
                        cursor="bottom_right_corner", font=("", 8))
        grip.place(relx=1.0, rely=1.0, anchor="se")
        grip.bind("<ButtonPress-1>", self._on_grip_press)
        grip.bind("<B1-Motion>", self._on_grip_drag)
        grip.bind("<ButtonRelease-1>", self._on_grip_release)

    @staticmethod
    def _bind_tree(widget: tk.Misc, sequence: str, handler) -> None:
        widget.bind(sequence, handler, add="+")
        for child in widget.winfo_children():
            PexiChatApp._bind_tree(child, sequence, handler)

    # ------------------------------------------------------------------
    # Listener lifetime
    # ------------------------------------------------------------------

    def _attach_listeners(self) -> None:
        """Register document-wide pointer listeners and the size observer."""
        # Bound on the "all" tag so a drag ends wherever the pointer is
        # released, not only over the header.
        self.root.bind_all("<B1-Motion>", self._on_pointer_move, add="+")
        self.root.bind_all("<ButtonRelease-1>", self._on_pointer_up, add="+")
        self.root.bind("<Configure>", self._on_configure)
        self.root.bind("<Map>", self._on_map)

    def _detach_listeners(self) -> None:
        self.root.unbind_all("<B1-Motion>")
        self.root.unbind_all("<ButtonRelease-1>")
        self.root.unbind("<Configure>")
        self.root.unbind("<Map>")

    # ------------------------------------------------------------------
    # Geometry events
    # ------------------------------------------------------------------

    def _current_viewport(self) -> Viewport:
        return Viewport(self.root.winfo_screenwidth(),
                        self.root.winfo_screenheight())

    def _apply_geometry(self, _geometry: WindowGeometry) -> None:
        self.root.geometry(self._controller.tk_geometry())

    def _on_header_press(self, event: tk.Event) -> None:
        on_control = isinstance(event.widget, tk.Button)
        self._controller.begin_drag(
            Point(event.x_root, event.y_root),
            Point(self.root.winfo_x(), self.root.winfo_y()),
            on_control=on_control,
        )

    def _on_pointer_move(self, event: tk.Event) -> None:
        if self._controller.is_dragging:
            self._controller.on_pointer_move(Point(event.x_root, event.y_root))

    def _on_pointer_up(self, _event: tk.Event) -> None:
        self._controller.end_drag()

    def _on_configure(self, event: tk.Event) -> None:
        # The root's tag is on every child's bindtags; only the toplevel
        # itself reports the window size.
        if event.widget is not self.root or not self.root.winfo_ismapped():
            return
        self._controller.on_external_resize(event.width, event.height)

    def _on_grip_press(self, event: tk.Event) -> None:
        self._grip_start = (event.x_root, event.y_root,
                            self.root.winfo_width(), self.root.winfo_height())

    def _on_grip_drag(self, event: tk.Event) -> None:
        if self._grip_start is None:
            return
        x0, y0, w0, h0 = self._grip_start
        width = max(MIN_WIDTH, w0 + event.x_root - x0)
        height = max(MIN_HEIGHT, h0 + event.y_root - y0)
        # The resulting <Configure> event reports the size to the controller.
        self.root.geometry(f"{width}x{height}")

    def _on_grip_release(self, _event: tk.Event) -> None:
        self._grip_start = None

    def _reset_window(self) -> None:
        self._controller.reset(self._current_viewport())

    def _toggle_maximize(self) -> None:
        self._controller.set_viewport(self._current_viewport())
        self._controller.toggle_maximize()

    def _minimize(self) -> None:
        # Window managers refuse to iconify override-redirect windows, so
        # the flag is dropped until the window is mapped again.
        self.root.overrideredirect(False)
        self.root.iconify()

    def _on_map(self, event: tk.Event) -> None:
        if event.widget is self.root and not self.root.overrideredirect():
            self.root.overrideredirect(True)
            self._apply_geometry(self._controller.geometry)

    # ------------------------------------------------------------------
    # Chat display
    # ------------------------------------------------------------------

    def _render(self) -> None:
        """Redraw the chat, banner and input state from the session."""
        if self._closed:
            return
        self._chat.config(state=tk.NORMAL)
        self._chat.delete("1.0", tk.END)

        turns = self._session.turns()
        if not turns:
            self._chat.insert(tk.END, f"Welcome to {APP_TITLE}\n",
                              "welcome_title")
            self._chat.insert(
                tk.END,
                "Start a conversation by typing a message below "
                "or attaching a file.",
                "welcome_body",
            )
        for turn in turns:
            self._render_turn(turn)
        if self._session.loading:
            self._chat.insert(tk.END, "\n\nPexi is thinking…", "sys_msg")

        self._chat.config(state=tk.DISABLED)
        self._chat.see(tk.END)

        self._refresh_banner()
        busy = self._session.loading
        self._send_btn.config(state=tk.DISABLED if busy else tk.NORMAL)
        self._input.config(state=tk.DISABLED if busy else tk.NORMAL)

    def _render_turn(self, turn: Turn) -> None:
        if self._chat.get("1.0", tk.END).strip():
            self._chat.insert(tk.END, "\n\n")

        is_user = turn.role is Role.USER
        if is_user:
            lbl_tag, body_tag = "user_lbl", "user_msg"
            label = "You"
        else:
            lbl_tag, body_tag = "asst_lbl", "asst_msg"
            label = APP_TITLE
            if turn.failed:
                body_tag = "err_msg"
        self._chat.insert(tk.END, f"{label}\n", lbl_tag)

        first = True
        for idx, part in enumerate(turn.parts):
            if part.is_text:
                if not first:
                    self._chat.insert(tk.END, "\n", body_tag)
                self._chat.insert(tk.END, part.text, body_tag)
                first = False
            elif part.is_image:
                if not first:
                    self._chat.insert(tk.END, "\n", body_tag)
                self._render_image(turn.id, idx, part, body_tag)
                first = False
            # Other binary attachments have no preview.

    def _render_image(self, turn_id: str, idx: int, part: ContentPart,
                      tag: str) -> None:
        key = (turn_id, idx)
        if key not in self._photos:
            self._photos[key] = self._decode_image(part)
        photo = self._photos[key]
        if photo is None:
            self._chat.insert(
                tk.END, f"[🖼 {part.inline_data.mime_type} image]", tag,
            )
            return
        # image_create ignores tags; a tagged space keeps the alignment.
        self._chat.insert(tk.END, " ", tag)
        self._chat.image_create(tk.END, image=photo)

    def _decode_image(self, part: ContentPart) -> tk.PhotoImage | None:
        """Return a PhotoImage for *part*, or *None* if Tk cannot decode it."""
        try:
            photo = tk.PhotoImage(master=self.root, data=part.inline_data.data)
        except tk.TclError as exc:
            log.debug("[APP] cannot preview %s: %s",
                      part.inline_data.mime_type, exc)
            return None
        if photo.width() > MAX_IMAGE_WIDTH:
            factor = math.ceil(photo.width() / MAX_IMAGE_WIDTH)
            photo = photo.subsample(factor, factor)
        return photo

    def _refresh_banner(self) -> None:
        error = self._session.error
        if error:
            self._banner.config(text=f"⚠  {error}")
            self._banner.pack(fill=tk.X, padx=10, pady=(4, 0),
                              before=self._input_frame)
        else:
            self._banner.pack_forget()

    # ------------------------------------------------------------------
    # File attachments
    # ------------------------------------------------------------------

    def _attach_file(self) -> None:
        path = filedialog.askopenfilename(
            title="Attach File", filetypes=FILE_TYPES, parent=self.root,
        )
        if not path:
            return
        try:
            self._composer.attach_file(path)
        except OSError as exc:
            log.warning("[APP] Could not read attachment %s: %s", path, exc)
            self._session.set_error(f"Could not read file: {exc}")
            return
        self._refresh_attach_bar()

    def _remove_attachment(self) -> None:
        self._composer.remove_attachment()
        self._refresh_attach_bar()

    def _refresh_attach_bar(self) -> None:
        attachment = self._composer.attachment
        if attachment is None:
            self._attach_outer.pack_forget()
            return
        icon = "🖼" if attachment.is_image else "📄"
        self._attach_label.config(text=f"{icon}  Attached: {attachment.name}")
        self._attach_outer.pack(fill=tk.X, padx=10, pady=(4, 0),
                                before=self._input_frame)

    # ------------------------------------------------------------------
    # Sending messages
    # ------------------------------------------------------------------

    def _on_enter_key(self, event: tk.Event) -> str | None:
        if not is_submit_keypress(event.keysym, event.state):
            return None
        self._send()
        return "break"

    def _send(self) -> None:
        self._composer.set_text(self._input.get("1.0", "end-1c"))
        parts = self._composer.submit(loading=self._session.loading)
        if parts is None:
            return

        self._input.delete("1.0", tk.END)
        self._refresh_attach_bar()

        request = self._session.begin(parts)
        if request is None:
            return
        threading.Thread(
            target=self._worker, args=(request,), daemon=True,
        ).start()

    def _worker(self, request: PendingRequest) -> None:
        """Background thread: perform the round trip and queue the reply."""
        self._queue.put(("done", self._session.run(request)))

    # ------------------------------------------------------------------
    # Queue pump (bridges worker thread → main thread)
    # ------------------------------------------------------------------

    def _pump_queue(self) -> None:
        if self._closed:
            return
        try:
            while True:
                kind, payload = self._queue.get_nowait()
                if kind == "done":
                    self._session.finish(payload)
        except queue.Empty:
            pass
        self.root.after(40, self._pump_queue)

    # ------------------------------------------------------------------
    # Shutdown / entry point
    # ------------------------------------------------------------------

    def _on_close(self) -> None:
        """Detach every listener and destroy the window."""
        self._closed = True
        try:
            self._detach_listeners()
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers.clear()
        finally:
            self.root.destroy()

    def run(self) -> None:
        """Start the Tk main loop."""
        log.info("[APP] %s starting (model=%s)", APP_TITLE, self._config.model)
        self.root.mainloop()
