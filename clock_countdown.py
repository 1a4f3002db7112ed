#!/usr/bin/env python3
"""
Clock Countdown - desktop clock with multiple countdowns
Features: Wall clock, parallel countdowns with pause/resume, history,
sound + OS notification + popup on finish, persisted colour and sound
"""

import logging
import tkinter as tk
from datetime import datetime
from tkinter import colorchooser, ttk

from countdown_alerts import NotificationManager, SoundManager, TONES
from countdown_controller import CountdownController
from countdown_logic import TaskState, format_clock, format_hms
from countdown_store import ConfigManager, DEFAULT_COLOR, resolve_log_level

logger = logging.getLogger(__name__)

FRAME_MS = 200
BG = "#000000"
MUTED = "#888888"

# ===================== MAIN APP =====================

class ClockCountdown:
    def __init__(self, root, config=None, sound=None, notifier=None):
        self.root = root
        self.root.title("Clock Countdown")
        self.root.geometry("520x560")

        self.config = config or ConfigManager()
        self.controller = CountdownController(
            self.config,
            sound=sound or SoundManager(),
            notifier=notifier or NotificationManager(),
            on_finished=self._show_popup,
        )

        # State
        self.color = self.config.get("color", DEFAULT_COLOR)
        self.time_format_24h = self.config.get("time_format_24h", True)
        self.task_rows = {}
        self.history_ids = None
        self.popups = []

        self._setup_ui()
        self._setup_keybindings()
        self._apply_color()
        self._refresh_history()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self._frame()

    def _setup_ui(self):
        self.root.configure(bg=BG)
        main = tk.Frame(self.root, bg=BG)
        main.pack(fill=tk.BOTH, expand=True, padx=8, pady=8)

        # Top bar
        top = tk.Frame(main, bg=BG)
        top.pack(fill=tk.X, pady=(0, 4))

        self.sound_var = tk.StringVar(value=self.config.get("sound", "Beep"))
        ttk.Combobox(top, textvariable=self.sound_var, values=list(TONES),
                     width=7, state="readonly", font=('Arial', 8)).pack(side=tk.LEFT, padx=2)
        self.sound_var.trace_add('write', lambda *a: self._change_sound())

        self.fmt_btn = tk.Button(top, text="24h" if self.time_format_24h else "12h",
                                 command=self._toggle_format,
                                 font=('Arial', 8, 'bold'), relief='flat', padx=6, pady=1)
        self.fmt_btn.pack(side=tk.LEFT, padx=4)

        self.color_btn = tk.Button(top, text="🎨", command=self._pick_color,
                                   font=('Arial', 9), relief='flat', padx=4, pady=0)
        self.color_btn.pack(side=tk.LEFT, padx=2)

        self.top_btn = tk.Button(top, text="📌", command=self._toggle_top,
                                 font=('Arial', 9), relief='flat', padx=4, pady=0)
        self.top_btn.pack(side=tk.RIGHT)

        # Clock display
        self.clock_lbl = tk.Label(main, font=('Arial', 42, 'bold'), bg=BG)
        self.clock_lbl.pack(pady=(0, 2))
        self.date_lbl = tk.Label(main, font=('Arial', 11), bg=BG)
        self.date_lbl.pack()

        # Add countdown
        add_f = tk.Frame(main, bg=BG)
        add_f.pack(pady=(10, 2))

        self.label_entry = tk.Entry(add_f, width=14, font=('Arial', 10))
        self.label_entry.pack(side=tk.LEFT, padx=2)

        self.duration_entry = tk.Entry(add_f, width=10, font=('Arial', 10), justify='center')
        self.duration_entry.pack(side=tk.LEFT, padx=2)

        tk.Label(add_f, text="S / M:S / H:M:S", font=('Arial', 8), bg=BG,
                 fg=MUTED).pack(side=tk.LEFT, padx=2)
        tk.Button(add_f, text="+ Add", command=self._add_task,
                  font=('Arial', 9), relief='flat', padx=8, pady=2).pack(side=tk.LEFT, padx=4)

        self.error_lbl = tk.Label(main, text="", font=('Arial', 9), bg=BG, fg="#ff3300")
        self.error_lbl.pack()

        # Active countdowns
        self.tasks_frame = tk.Frame(main, bg=BG)
        self.tasks_frame.pack(fill=tk.X, pady=4)

        # History
        hist_head = tk.Frame(main, bg=BG)
        hist_head.pack(fill=tk.X, pady=(8, 0))
        tk.Label(hist_head, text="History", font=('Arial', 10, 'bold'), bg=BG).pack(side=tk.LEFT)
        tk.Button(hist_head, text="Clear", command=self.controller.clear_history,
                  font=('Arial', 8), relief='flat', padx=4).pack(side=tk.RIGHT)

        list_frame = tk.Frame(main, bg=BG)
        list_frame.pack(fill=tk.BOTH, expand=True)

        canvas = tk.Canvas(list_frame, height=120, bg=BG, highlightthickness=0)
        scrollbar = ttk.Scrollbar(list_frame, orient="vertical", command=canvas.yview)
        self.history_frame = tk.Frame(canvas, bg=BG)
        self.history_frame.bind(
            "<Configure>",
            lambda e: canvas.configure(scrollregion=canvas.bbox("all"))
        )
        canvas.create_window((0, 0), window=self.history_frame, anchor="nw")
        canvas.configure(yscrollcommand=scrollbar.set)
        canvas.pack(side="left", fill="both", expand=True)
        scrollbar.pack(side="right", fill="y")

    def _setup_keybindings(self):
        self.duration_entry.bind('<Return>', lambda e: self._add_task())
        self.label_entry.bind('<Return>', lambda e: self.duration_entry.focus_set())

    # ---- commands ----

    def _add_task(self):
        label = self.label_entry.get()
        text = self.duration_entry.get()
        task_id, error = self.controller.add(label, text)
        if error:
            # leave the text so it can be corrected
            self.error_lbl.config(text=error)
            return

        self.error_lbl.config(text="")
        self.duration_entry.delete(0, tk.END)
        self.label_entry.delete(0, tk.END)
        logger.debug("Started countdown %d", task_id)

    def _restart(self, history_id):
        self.controller.restart(history_id)

    def _delete_history(self, history_id):
        self.controller.delete_from_history(history_id)

    def _change_sound(self):
        self.config.set("sound", self.sound_var.get())

    def _toggle_format(self):
        self.time_format_24h = not self.time_format_24h
        self.fmt_btn.config(text="24h" if self.time_format_24h else "12h")
        self.config.set("time_format_24h", self.time_format_24h)

    def _toggle_top(self):
        current = self.root.attributes('-topmost')
        self.root.attributes('-topmost', not current)
        self.top_btn.config(relief='sunken' if not current else 'flat')

    def _pick_color(self):
        _, hex_color = colorchooser.askcolor(color=self.color, title="Display colour")
        if hex_color:
            self.color = hex_color
            self.config.set("color", hex_color)
            self._apply_color()

    def _apply_color(self):
        def apply_recursive(w):
            if isinstance(w, tk.Label) and w.cget('fg') != MUTED:
                w.configure(fg=self.color)
            elif isinstance(w, tk.Button):
                w.configure(bg=BG, fg=self.color, activebackground=BG,
                            activeforeground=self.color)
            for child in w.winfo_children():
                apply_recursive(child)

        apply_recursive(self.root)
        self.error_lbl.configure(fg="#ff3300")

    # ---- rows ----

    def _build_task_row(self, view):
        f = tk.Frame(self.tasks_frame, bg=BG)
        f.pack(fill=tk.X, pady=2)

        name = tk.Label(f, text=view.label, font=('Arial', 10), bg=BG, width=14, anchor='w')
        name.pack(side=tk.LEFT, padx=2)
        remaining = tk.Label(f, font=('Arial', 14, 'bold'), bg=BG)
        remaining.pack(side=tk.LEFT, padx=4)
        bar = ttk.Progressbar(f, length=110, maximum=1.0)
        bar.pack(side=tk.LEFT, padx=4)

        tk.Button(f, text="⏹", command=lambda: self.controller.stop(view.id),
                  font=('Arial', 10), relief='flat', padx=6).pack(side=tk.RIGHT, padx=1)
        pause_btn = tk.Button(f, text="⏸", command=lambda: self.controller.toggle(view.id),
                              font=('Arial', 10), relief='flat', padx=6)
        pause_btn.pack(side=tk.RIGHT, padx=1)

        row = {"frame": f, "remaining": remaining, "bar": bar, "pause": pause_btn}
        self.task_rows[view.id] = row
        return row

    def _update_task_rows(self, views):
        live = {v.id for v in views}
        for task_id in list(self.task_rows):
            if task_id not in live:
                self.task_rows.pop(task_id)["frame"].destroy()

        created = False
        for view in views:
            row = self.task_rows.get(view.id)
            if row is None:
                row = self._build_task_row(view)
                created = True
            row["remaining"].config(text=view.remaining)
            row["bar"].config(value=view.fraction)
            row["pause"].config(text="▶" if view.state is TaskState.PAUSED else "⏸")

        if created:
            self._apply_color()

    def _refresh_history(self):
        entries = self.controller.history()
        ids = [e.id for e in entries]
        if ids == self.history_ids:
            return
        self.history_ids = ids

        for widget in self.history_frame.winfo_children():
            widget.destroy()

        for entry in reversed(entries):
            f = tk.Frame(self.history_frame, bg=BG)
            f.pack(fill=tk.X, pady=1)
            tk.Label(f, text=entry.created_at.strftime('%d/%m %H:%M'),
                     font=('Arial', 9), bg=BG).pack(side=tk.LEFT, padx=4)
            tk.Label(f, text=entry.label, font=('Arial', 9, 'bold'),
                     bg=BG).pack(side=tk.LEFT, padx=4)
            tk.Label(f, text=format_hms(entry.target_duration),
                     font=('Arial', 9), bg=BG).pack(side=tk.LEFT, padx=4)
            tk.Button(f, text="×", command=lambda i=entry.id: self._delete_history(i),
                      font=('Arial', 10), relief='flat', padx=4).pack(side=tk.RIGHT)
            tk.Button(f, text="↻", command=lambda i=entry.id: self._restart(i),
                      font=('Arial', 10), relief='flat', padx=4).pack(side=tk.RIGHT)

        self._apply_color()

    # ---- popup ----

    def _show_popup(self, entry, message):
        """Non-modal: the frame loop keeps running while it is open"""
        win = tk.Toplevel(self.root)
        win.title("⏰ Countdown finished")
        win.configure(bg=BG)
        win.attributes('-topmost', True)
        win.resizable(False, False)

        tk.Label(win, text=entry.label, font=('Arial', 18, 'bold'),
                 bg=BG, fg=self.color).pack(padx=20, pady=(14, 4))
        tk.Label(win, text=message, font=('Arial', 11),
                 bg=BG, fg=self.color).pack(padx=20)

        def dismiss(_event=None):
            self.controller.sound.stop()
            if win in self.popups:
                self.popups.remove(win)
            win.destroy()

        tk.Button(win, text="OK", command=dismiss, font=('Arial', 10, 'bold'),
                  relief='flat', padx=20).pack(pady=12)
        win.bind('<Return>', dismiss)
        win.bind('<Escape>', dismiss)
        win.protocol("WM_DELETE_WINDOW", dismiss)
        self.popups.append(win)

    # ---- loop ----

    def _frame(self):
        """Redraw - every FRAME_MS"""
        now = datetime.now()
        self.clock_lbl.config(text=format_clock(now, self.time_format_24h))
        self.date_lbl.config(text=now.strftime('%d/%m - %A'))

        self.controller.frame()
        self._update_task_rows(self.controller.views())
        self._refresh_history()

        self.root.after(FRAME_MS, self._frame)

    def _on_close(self):
        self.controller.save()
        self.controller.sound.stop()
        self.root.destroy()


def main():
    logging.basicConfig(
        level=resolve_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    root = tk.Tk()
    ClockCountdown(root)
    root.mainloop()


if __name__ == "__main__":
    main()
