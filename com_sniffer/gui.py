"""Tkinter window: serial settings, live hex/ASCII panes and session controls."""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from .const import BAUD_CHOICES, DATA_BITS_CHOICES, DEFAULT_BAUD, DEFAULT_DATA_BITS, DEFAULT_VIEW_LINES
from .errors import SnifferError
from .lifecycle import SessionLifecycle
from .ports import list_candidate_ports, preferred_port
from .session import latest_session_dir
from .settings import Handshake, Parity, SerialSettings, StopBits
from .support_pack import create_support_pack
from .types import Trace

DRAIN_INTERVAL_MS = 100
# Upper bound on lines moved from the view queue into the widgets per tick.
DRAIN_BATCH = 2000


def open_folder(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    if sys.platform.startswith("win"):
        os.startfile(str(path))  # noqa: S606
    elif sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    else:
        subprocess.Popen(["xdg-open", str(path)])


class SnifferGui(tk.Tk):
    def __init__(self, log_root: Path | None = None) -> None:
        super().__init__()
        self.title("COM Sniffer (hex + ASCII logger)")
        self.geometry("1200x760")

        self.lifecycle = SessionLifecycle(log_root=log_root, on_error=self._report_async_error)
        self.max_lines = DEFAULT_VIEW_LINES

        self._make_top_config()
        self._make_status()
        self._make_panes()
        self.protocol("WM_DELETE_WINDOW", self.on_close)

        self.on_refresh_ports()
        self.after(DRAIN_INTERVAL_MS, self._drain_view)

    def _make_top_config(self) -> None:
        frame = ttk.LabelFrame(self, text="Serial Settings")
        frame.pack(fill="x", padx=8, pady=8)

        self.port_var = tk.StringVar(value="")
        self.baud_var = tk.StringVar(value=str(DEFAULT_BAUD))
        self.byte_var = tk.StringVar(value=str(DEFAULT_DATA_BITS))
        self.parity_var = tk.StringVar(value=Parity.NONE.value)
        self.stop_var = tk.StringVar(value=StopBits.ONE.value)
        self.handshake_var = tk.StringVar(value=Handshake.NONE.value)

        self.port_box = ttk.Combobox(frame, textvariable=self.port_var, width=18)
        fields = [
            ("Port", self.port_box),
            ("Baud", ttk.Combobox(frame, textvariable=self.baud_var, values=list(BAUD_CHOICES), width=8)),
            (
                "Data Bits",
                ttk.Combobox(frame, textvariable=self.byte_var, values=list(DATA_BITS_CHOICES), width=4, state="readonly"),
            ),
            (
                "Parity",
                ttk.Combobox(frame, textvariable=self.parity_var, values=[m.value for m in Parity], width=7, state="readonly"),
            ),
            (
                "Stop Bits",
                ttk.Combobox(frame, textvariable=self.stop_var, values=[m.value for m in StopBits], width=12, state="readonly"),
            ),
            (
                "Handshake",
                ttk.Combobox(
                    frame, textvariable=self.handshake_var, values=[m.value for m in Handshake], width=20, state="readonly"
                ),
            ),
        ]

        for idx, (label, widget) in enumerate(fields):
            ttk.Label(frame, text=label).grid(row=0, column=idx * 2, padx=(6, 2), pady=6, sticky="w")
            widget.grid(row=0, column=idx * 2 + 1, padx=(0, 6), pady=6, sticky="w")

        buttons = ttk.Frame(frame)
        buttons.grid(row=1, column=0, columnspan=len(fields) * 2, sticky="w", padx=4, pady=(0, 6))
        self.btn_connect = ttk.Button(buttons, text="Connect", command=self.on_connect)
        self.btn_disconnect = ttk.Button(buttons, text="Disconnect", command=self.on_disconnect, state="disabled")
        for widget in (
            ttk.Button(buttons, text="Refresh Ports", command=self.on_refresh_ports),
            ttk.Button(buttons, text="Try Common Settings", command=self.on_common_settings),
            self.btn_connect,
            self.btn_disconnect,
            ttk.Button(buttons, text="Clear", command=self.on_clear),
            ttk.Button(buttons, text="Open Logs Folder", command=self.on_open_logs),
            ttk.Button(buttons, text="Create Support Pack (.zip)", command=self.on_support_pack),
        ):
            widget.pack(side="left", padx=4)

    def _make_status(self) -> None:
        frame = ttk.Frame(self)
        frame.pack(fill="x", padx=8)
        self.status_var = tk.StringVar(value="Status: Disconnected")
        self.bytes_var = tk.StringVar(value="RX bytes: 0")
        ttk.Label(frame, textvariable=self.status_var).pack(side="left")
        ttk.Label(frame, textvariable=self.bytes_var).pack(side="left", padx=24)

    def _make_panes(self) -> None:
        panes = ttk.PanedWindow(self, orient="horizontal")
        panes.pack(fill="both", expand=True, padx=8, pady=8)
        self.text_widgets: dict[Trace, tk.Text] = {}
        for trace, title in ((Trace.HEX, "HEX (raw RX)"), (Trace.ASCII, "ASCII (best-effort)")):
            group = ttk.LabelFrame(panes, text=title)
            text = tk.Text(group, wrap="none", state="disabled")
            yscroll = ttk.Scrollbar(group, orient="vertical", command=text.yview)
            xscroll = ttk.Scrollbar(group, orient="horizontal", command=text.xview)
            text.configure(yscrollcommand=yscroll.set, xscrollcommand=xscroll.set)
            yscroll.pack(side="right", fill="y")
            xscroll.pack(side="bottom", fill="x")
            text.pack(fill="both", expand=True)
            panes.add(group, weight=1)
            self.text_widgets[trace] = text

    def _drain_view(self) -> None:
        pending: dict[Trace, list[str]] = {trace: [] for trace in Trace}
        for trace, line in self.lifecycle.view.drain(DRAIN_BATCH):
            pending[trace].append(line)
        for trace, lines in pending.items():
            if lines:
                self._append_lines(self.text_widgets[trace], lines)

        self.bytes_var.set(f"RX bytes: {self.lifecycle.rx_bytes}")
        status = f"Status: {self.lifecycle.status_text}"
        if self.lifecycle.last_error and not self.lifecycle.connected:
            status += f" (last error: {self.lifecycle.last_error})"
        self.status_var.set(status)
        self._sync_buttons()
        self.after(DRAIN_INTERVAL_MS, self._drain_view)

    def _append_lines(self, widget: tk.Text, lines: list[str]) -> None:
        widget.configure(state="normal")
        widget.insert("end", "\n".join(lines) + "\n")
        total = int(widget.index("end-1c").split(".")[0]) - 1
        if total > self.max_lines:
            widget.delete("1.0", f"{total - self.max_lines + 1}.0")
        widget.configure(state="disabled")
        widget.see("end")

    def _sync_buttons(self) -> None:
        connected = self.lifecycle.connected
        self.btn_connect.configure(state="disabled" if connected else "normal")
        self.btn_disconnect.configure(state="normal" if connected else "disabled")

    def _report_async_error(self, message: str) -> None:
        # Called from the capture thread.
        self.after(0, lambda: messagebox.showerror("Logging stopped", message))

    def _settings(self) -> SerialSettings:
        return SerialSettings.from_mapping(
            {
                "port": self.port_var.get(),
                "baudrate": self.baud_var.get(),
                "bytesize": self.byte_var.get(),
                "parity": self.parity_var.get(),
                "stopbits": self.stop_var.get(),
                "handshake": self.handshake_var.get(),
            }
        )

    def on_refresh_ports(self) -> None:
        ports = list_candidate_ports()
        self.port_box.configure(values=ports)
        self.port_var.set(preferred_port(ports) or "")

    def on_common_settings(self) -> None:
        self.baud_var.set(str(DEFAULT_BAUD))
        self.byte_var.set(str(DEFAULT_DATA_BITS))
        self.parity_var.set(Parity.NONE.value)
        self.stop_var.set(StopBits.ONE.value)
        self.handshake_var.set(Handshake.NONE.value)

    def on_connect(self) -> None:
        try:
            self.lifecycle.connect(self._settings())
        except SnifferError as exc:
            messagebox.showerror("Connect", str(exc))
        self._sync_buttons()

    def on_disconnect(self) -> None:
        self.lifecycle.disconnect()
        self._sync_buttons()

    def on_clear(self) -> None:
        self.lifecycle.view.clear()
        for widget in self.text_widgets.values():
            widget.configure(state="normal")
            widget.delete("1.0", "end")
            widget.configure(state="disabled")

    def on_open_logs(self) -> None:
        try:
            open_folder(self.lifecycle.log_root)
        except OSError as exc:
            messagebox.showerror("Open Logs Folder", str(exc))

    def on_support_pack(self) -> None:
        folder = filedialog.askdirectory(title="Select the folder to include in the support pack")
        if not folder:
            return
        root = self.lifecycle.log_root
        session_dir = self.lifecycle.last_session_dir or latest_session_dir(root)
        try:
            zip_path = create_support_pack(Path(folder), session_dir, root)
        except (SnifferError, OSError) as exc:
            messagebox.showerror("Support Pack", f"Failed to create support pack: {exc}")
            return
        messagebox.showinfo("Support Pack", f"Support pack created:\n{zip_path}")

    def on_close(self) -> None:
        self.lifecycle.disconnect()
        self.destroy()


def run_gui(log_root: Path | None = None) -> int:
    app = SnifferGui(log_root)
    app.mainloop()
    return 0
