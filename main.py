"""
Echo Drill - Tkinter (card-based) pronunciation trainer

Flow:
1. Intro card: learner name + pack selection.
2. Drill card: one item at a time. Play it (normal or slow), record your
   Echo, listen to your take, then self-report "Got it" / "Not yet".
3. Completion panel: +50 XP and Replay.

Setup (from repo root):

    python -m venv .venv
    source .venv/bin/activate   # or .venv\\Scripts\\activate on Windows
    pip install -e .

Optional .env for "What did I say?":
    OPENAI_API_KEY=sk-...

Then run:
    echo-drill        # or: python main.py
"""

import tkinter as tk
from tkinter import messagebox, ttk
from typing import Dict, Optional

from echodrill.api import is_api_available, transcribe_clip_async
from echodrill.capture import AudioCaptureController, RECORDING_ERROR
from echodrill.config import COMPLETION_BONUS_XP, LEARNER_NAME
from echodrill.errors import MicrophonePermissionError
from echodrill.logger import logger
from echodrill.packs import PackRegistry
from echodrill.session import LessonSession, SessionState
from echodrill.speech import Pyttsx3Engine, SpeechOutputController
from echodrill.storage import PersistentCounter
from echodrill.voices import VoiceResolver, pyttsx3_inventory

BG = "#1e1e1e"
FG = "#e0e0e0"
ACCENT = "#7bb3ff"
ERROR_FG = "#ff6b6b"


def draw_echo_logo(canvas: tk.Canvas, size: int = 28) -> None:
    """Echo ripple: three concentric rings fading outwards."""
    c = size / 2
    for radius, color in ((size * 0.06, "#ffffff"), (size * 0.21, "#bbbbbb"), (size * 0.38, "#777777")):
        canvas.create_oval(c - radius, c - radius, c + radius, c + radius, outline=color, width=2)


# ---------------------------------------------------------------------------
# Main application
# ---------------------------------------------------------------------------

class EchoDrillApp(tk.Tk):
    def __init__(self) -> None:
        super().__init__()
        logger.ui("Initializing EchoDrillApp window...")

        self.title("Echo Drill")
        self.geometry("640x620")
        self.minsize(420, 480)
        self.configure(bg=BG)

        style = ttk.Style()
        style.theme_use("clam")
        style.configure("TFrame", background=BG)
        style.configure("TLabel", background=BG, foreground=FG, font=("Helvetica", 14))
        style.configure("TButton", background="#2d2d2d", foreground=FG, font=("Helvetica", 13))
        style.map("TButton", background=[("active", "#3d3d3d")])
        style.configure("TCheckbutton", background=BG, foreground=FG)
        style.configure("Item.TLabel", font=("Helvetica", 40, "bold"), foreground="#ffffff")
        style.configure("Muted.TLabel", font=("Helvetica", 13), foreground="#9a9a9a")

        # Audio + drill engine
        self.registry = PackRegistry.bundled()
        self.voices = VoiceResolver(pyttsx3_inventory)
        self.voices.subscribe(lambda voices: self.after(0, self._on_voices_changed, len(voices)))
        self.voices.refresh_async()
        self.speech = SpeechOutputController(Pyttsx3Engine(), self.voices)
        self.capture = AudioCaptureController(notify=self._on_capture_notice)
        self.xp = PersistentCounter.default()
        self.session = self._new_session(LEARNER_NAME)

        container = ttk.Frame(self)
        container.pack(fill="both", expand=True, padx=24, pady=24)
        container.rowconfigure(0, weight=1)
        container.columnconfigure(0, weight=1)

        self.cards: Dict[str, ttk.Frame] = {}
        for CardClass in (IntroCard, DrillCard):
            card = CardClass(parent=container, controller=self)
            self.cards[CardClass.__name__] = card
            card.grid(row=0, column=0, sticky="nsew")

        self.protocol("WM_DELETE_WINDOW", self.on_close)
        logger.ui("Application initialized successfully")
        self.show_card("IntroCard")

    def _new_session(self, learner_name: str) -> LessonSession:
        return LessonSession(
            self.registry, self.xp, speech=self.speech, capture=self.capture, learner_name=learner_name
        )

    def show_card(self, name: str) -> None:
        logger.ui_transition("current_card", name)
        self.cards[name].tkraise()

    # Callbacks from audio subsystem -----------------------------------------

    def _on_voices_changed(self, count: int) -> None:
        logger.ui(f"{count} synthesis voice(s) available")

    def _on_capture_notice(self, message: str) -> None:
        drill: DrillCard = self.cards["DrillCard"]
        drill.show_status(message, error=True)

    # High-level flow ----------------------------------------------------------

    def start_pack(self, code: str, learner_name: str) -> None:
        """Triggered from the intro card."""
        if self.session.state is not SessionState.NOT_STARTED:
            self.session.close()
            self.session = self._new_session(learner_name)
        self.session.set_learner_name(learner_name)
        self.session.select_pack(code)
        drill: DrillCard = self.cards["DrillCard"]
        drill.refresh()
        self.show_card("DrillCard")

    def back_to_intro(self) -> None:
        self.session.close()
        self.session = self._new_session(self.session.learner_name)
        self.show_card("IntroCard")

    def start_recording(self) -> bool:
        started = self.capture.start()
        if not started and isinstance(self.capture.last_error, MicrophonePermissionError):
            messagebox.showwarning("Microphone", "Please allow microphone access to record your Echo.")
        return started

    def on_close(self) -> None:
        logger.separator("Closing")
        self.session.close()
        self.destroy()


# ---------------------------------------------------------------------------
# Intro card
# ---------------------------------------------------------------------------

class IntroCard(ttk.Frame):
    def __init__(self, parent, controller: EchoDrillApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.columnconfigure(0, weight=1)

        header = ttk.Frame(self)
        header.grid(row=0, column=0, pady=(40, 24))
        logo = tk.Canvas(header, width=36, height=36, bg=BG, highlightthickness=0)
        draw_echo_logo(logo, 36)
        logo.pack(side="left", padx=(0, 10))
        ttk.Label(header, text="Echo Drill", font=("Helvetica", 26)).pack(side="left")

        ttk.Label(self, text="Your name").grid(row=1, column=0, sticky="w")
        self.name_var = tk.StringVar(value=controller.session.learner_name)
        ttk.Entry(self, textvariable=self.name_var, font=("Helvetica", 14)).grid(
            row=2, column=0, sticky="ew", pady=(4, 16)
        )

        ttk.Label(self, text="Pack").grid(row=3, column=0, sticky="w")
        self._packs = {f"{p.name} ({p.item_count})": p.code for p in controller.registry.list_packs()}
        labels = list(self._packs)
        self.pack_var = tk.StringVar(value=labels[0] if labels else "")
        ttk.Combobox(self, textvariable=self.pack_var, values=labels, state="readonly").grid(
            row=4, column=0, sticky="ew", pady=(4, 24)
        )

        self.xp_label = ttk.Label(self, style="Muted.TLabel")
        self.xp_label.grid(row=5, column=0, pady=(0, 12))
        self._update_xp()

        ttk.Button(self, text="Start", command=self._on_start_clicked).grid(row=6, column=0, sticky="ew")

    def _update_xp(self) -> None:
        self.xp_label.configure(text=f"XP {self.controller.xp.value}")

    def tkraise(self, *args) -> None:
        self._update_xp()
        super().tkraise(*args)

    def _on_start_clicked(self) -> None:
        code = self._packs.get(self.pack_var.get())
        if not code:
            messagebox.showinfo("Echo Drill", "Pick a pack first.")
            return
        logger.ui(f"Start clicked: pack={code}")
        self.controller.start_pack(code, self.name_var.get())


# ---------------------------------------------------------------------------
# Drill card
# ---------------------------------------------------------------------------

class DrillCard(ttk.Frame):
    def __init__(self, parent, controller: EchoDrillApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.columnconfigure(0, weight=1)

        top = ttk.Frame(self)
        top.grid(row=0, column=0, sticky="ew")
        top.columnconfigure(1, weight=1)
        self.counter_label = ttk.Label(top, font=("Helvetica", 12))
        self.counter_label.grid(row=0, column=0, sticky="w")
        ttk.Button(top, text="Packs", command=controller.back_to_intro).grid(row=0, column=1, sticky="e", padx=8)
        self.xp_label = ttk.Label(top, font=("Helvetica", 12, "bold"), foreground=ACCENT)
        self.xp_label.grid(row=0, column=2, sticky="e")

        self.progress = ttk.Progressbar(self, maximum=100)
        self.progress.grid(row=1, column=0, sticky="ew", pady=(8, 16))

        self.text_label = ttk.Label(self, style="Item.TLabel", anchor="center")
        self.text_label.grid(row=2, column=0)
        self.romanization_label = ttk.Label(self, font=("Helvetica", 18), anchor="center")
        self.romanization_label.grid(row=3, column=0)
        self.gloss_label = ttk.Label(self, style="Muted.TLabel", anchor="center")
        self.gloss_label.grid(row=4, column=0, pady=(0, 12))

        audio_row = ttk.Frame(self)
        audio_row.grid(row=5, column=0, pady=6)
        ttk.Button(audio_row, text="▶ Play", command=self._on_play_click).pack(side="left", padx=4)
        self.slow_var = tk.BooleanVar(value=False)
        ttk.Checkbutton(audio_row, text="Slow", variable=self.slow_var, command=self._on_slow_toggled).pack(
            side="left", padx=4
        )
        self.record_button = ttk.Button(audio_row, text="🎤 Echo", command=self._toggle_recording)
        self.record_button.pack(side="left", padx=4)
        self.take_button = ttk.Button(audio_row, text="🔊 My take", command=self._on_take_click)
        self.transcribe_button = ttk.Button(audio_row, text="What did I say?", command=self._on_transcribe_click)

        answer_row = ttk.Frame(self)
        answer_row.grid(row=6, column=0, pady=10)
        self.correct_button = ttk.Button(answer_row, text="Got it", command=self._on_correct_click)
        self.correct_button.pack(side="left", padx=4)
        self.wrong_button = ttk.Button(answer_row, text="Not yet", command=self._on_wrong_click)
        self.wrong_button.pack(side="left", padx=4)

        self.encouragement_label = ttk.Label(self, font=("Helvetica", 15), foreground="#9bc6ff")
        self.encouragement_label.grid(row=7, column=0, pady=(4, 0))
        self.status_label = ttk.Label(self, font=("Helvetica", 11), foreground=ACCENT, wraplength=520)
        self.status_label.grid(row=8, column=0, pady=(4, 0))

        self.complete_frame = ttk.Frame(self)
        self.complete_frame.grid(row=9, column=0, pady=(18, 0))
        heading = ttk.Frame(self.complete_frame)
        heading.pack()
        logo = tk.Canvas(heading, width=28, height=28, bg=BG, highlightthickness=0)
        draw_echo_logo(logo, 28)
        logo.pack(side="left", padx=(0, 6))
        ttk.Label(heading, text="Set Complete", font=("Helvetica", 15, "bold")).pack(side="left")
        self.complete_label = ttk.Label(self.complete_frame, style="Muted.TLabel")
        self.complete_label.pack(pady=4)
        ttk.Button(self.complete_frame, text="Replay", command=self._on_replay_click).pack()
        self.complete_frame.grid_remove()

        if RECORDING_ERROR:
            self.record_button.configure(state="disabled")
            self.show_status(RECORDING_ERROR, error=True)

    # Rendering -----------------------------------------------------------------

    def refresh(self) -> None:
        session = self.controller.session
        recording = self.controller.capture.is_recording
        self.record_button.configure(text="■ Stop" if recording else "🎤 Echo")
        item = session.current_item
        if item is None:
            return
        total = len(session.pack.items)
        self.counter_label.configure(text=f"{session.cursor + 1}/{total}")
        self.xp_label.configure(text=f"XP {session.xp}")
        self.progress.configure(value=session.progress)
        self.text_label.configure(text=item.text)
        self.romanization_label.configure(text=item.romanization)
        self.gloss_label.configure(text=item.gloss)
        self.encouragement_label.configure(text=session.last_encouragement or "")
        self._refresh_take_buttons()

        complete = session.state is SessionState.COMPLETE
        state = "disabled" if complete else "normal"
        self.correct_button.configure(state=state)
        self.wrong_button.configure(state=state)
        if complete:
            name = session.learner_name
            self.complete_label.configure(
                text=f"Nice work{', ' + name if name else ''}! +{COMPLETION_BONUS_XP} XP"
            )
            self.complete_frame.grid()
        else:
            self.complete_frame.grid_remove()

    def _refresh_take_buttons(self) -> None:
        if self.controller.capture.clip is not None:
            self.take_button.pack(side="left", padx=4)
            if is_api_available():
                self.transcribe_button.pack(side="left", padx=4)
        else:
            self.take_button.pack_forget()
            self.transcribe_button.pack_forget()

    def show_status(self, message: str, error: bool = False) -> None:
        self.status_label.configure(text=message, foreground=ERROR_FG if error else ACCENT)

    # Events --------------------------------------------------------------------

    def _on_play_click(self) -> None:
        self.controller.session.play_prompt()

    def _on_slow_toggled(self) -> None:
        self.controller.session.set_slow_mode(self.slow_var.get())

    def _toggle_recording(self) -> None:
        capture = self.controller.capture
        if capture.is_recording:
            clip = capture.stop()
            self.record_button.configure(text="🎤 Echo")
            if clip is not None:
                self.show_status(f"Recorded {clip.duration_seconds:.1f}s")
            self._refresh_take_buttons()
        elif self.controller.start_recording():
            self.record_button.configure(text="■ Stop")
            self.show_status("Recording... click Stop when done")
            self._refresh_take_buttons()

    def _on_take_click(self) -> None:
        self.controller.capture.playback()

    def _on_transcribe_click(self) -> None:
        clip = self.controller.capture.clip
        if clip is None:
            return
        self.show_status("Transcribing...")
        language = self.controller.session.pack.code

        def _on_result(text: Optional[str]) -> None:
            if text is None:
                self.after(0, lambda: self.show_status("Transcription failed, try again.", error=True))
            else:
                self.after(0, lambda: self.show_status(f'You said: "{text}"'))

        transcribe_clip_async(clip, language, _on_result)

    def _on_correct_click(self) -> None:
        self.controller.session.mark_correct()
        self.show_status("")
        self.refresh()

    def _on_wrong_click(self) -> None:
        self.controller.session.mark_incorrect()
        self.refresh()

    def _on_replay_click(self) -> None:
        logger.ui("Replay clicked")
        self.controller.session.restart()
        self.show_status("")
        self.refresh()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    logger.separator("Application Starting")
    app = EchoDrillApp()
    logger.success("Application window created, entering main loop")
    app.mainloop()
    logger.separator("Application Closed")


if __name__ == "__main__":
    main()
