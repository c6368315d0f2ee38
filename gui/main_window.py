"""
Main Window for PocketBeat
Header, LCD, transport and the four-track step grid
"""

import tkinter as tk

from pocketbeat.constants import InstrumentKind, MIN_BPM, MAX_BPM
from pocketbeat.engine import AudioEngine, SoundDeviceOutput
from pocketbeat.pattern_manager import PatternManager
from pocketbeat.preferences_manager import PreferencesManager
from pocketbeat.scheduler import Scheduler
from pocketbeat.synthesizer import DrumSynthesizer
from .widgets import COLORS, CircularButton, ToggleButton, StepRow, LCDScreen


class PocketBeatGUI:
    """
    Main GUI application for PocketBeat
    """

    # Playhead refresh period
    UI_UPDATE_MS = 30

    TRACK_COLORS = {
        InstrumentKind.KICK: COLORS['kick'],
        InstrumentKind.SNARE: COLORS['snare'],
        InstrumentKind.HIHAT: COLORS['hihat'],
        InstrumentKind.CLAP: COLORS['clap'],
    }

    def __init__(self):
        # Preferences manager
        self.preferences_manager = PreferencesManager()
        prefs = self.preferences_manager

        # Create main window
        self.root = tk.Tk()
        self.root.title("PO-Clone")
        self.root.configure(bg=COLORS['bg'])
        self.root.resizable(False, False)
        self.root.geometry(f"{prefs.get('window_width', 780)}x{prefs.get('window_height', 560)}")

        # Audio engine: the stream is opened on the first click
        self.sample_rate = int(prefs.get('sample_rate', 44100))
        output = SoundDeviceOutput(device=prefs.get('audio_output_device'),
                                   blocksize=int(prefs.get('audio_blocksize', 512)))
        self.engine = AudioEngine(self.sample_rate, output=output,
                                  master_volume=prefs.get('master_volume', 0.8))
        self.synth = DrumSynthesizer(self.engine)

        # Pattern and transport
        self.pattern_manager = PatternManager(bpm=prefs.get('default_bpm', 120))
        self.scheduler = Scheduler(self.engine, self.synth, self.pattern_manager)

        # UI state
        self.updating_ui = False  # Prevent feedback loops
        self.ui_update_timer = None

        self._build_ui()
        self._update_pattern_editors()

        self.root.bind('<Button-1>', self._on_first_interaction, add='+')
        self.root.protocol('WM_DELETE_WINDOW', self._on_close)

        self._ui_update_tick()

    # ============== Layout ==============

    def _build_ui(self):
        """Build the main UI"""
        main_frame = tk.Frame(self.root, bg=COLORS['bg'], padx=16, pady=12)
        main_frame.pack(fill='both', expand=True)

        self._build_header(main_frame)
        self._build_lcd(main_frame)
        self._build_transport(main_frame)
        self._build_grid(main_frame)

    def _build_header(self, parent):
        header = tk.Frame(parent, bg=COLORS['bg'])
        header.pack(fill='x', pady=(0, 8))

        tk.Label(header, text="PO-Clone", bg=COLORS['bg'], fg=COLORS['dark'],
                 font=('Segoe UI', 18, 'bold')).pack(side='left')
        tk.Label(header, text="pocket beat", bg=COLORS['bg'], fg=COLORS['accent'],
                 font=('Segoe UI', 10, 'italic')).pack(side='left', padx=(8, 0), pady=(8, 0))

        self.audio_status_label = tk.Label(header, text="click to enable audio",
                                           bg=COLORS['bg'], fg=COLORS['text_dim'],
                                           font=('Segoe UI', 8))
        self.audio_status_label.pack(side='right')

    def _build_lcd(self, parent):
        self.lcd = LCDScreen(parent)
        self.lcd.pack(pady=(0, 10))

    def _build_transport(self, parent):
        """Transport buttons and the tempo/swing sliders"""
        transport = tk.Frame(parent, bg=COLORS['control_bg'], padx=10, pady=8)
        transport.pack(fill='x', pady=(0, 10))

        self.play_button = CircularButton(transport, text="▶", size=48,
                                          command=self._on_play_toggle,
                                          bg_color=COLORS['accent'], fg_color='white')
        self.play_button.pack(side='left', padx=(0, 8))

        self.clear_button = CircularButton(transport, text="CLR", size=48,
                                           command=self._on_clear)
        self.clear_button.pack(side='left', padx=(0, 16))

        # Tempo
        tempo_frame = tk.Frame(transport, bg=COLORS['control_bg'])
        tempo_frame.pack(side='left', padx=8)
        tk.Label(tempo_frame, text="TEMPO", bg=COLORS['control_bg'], fg=COLORS['dark'],
                 font=('Segoe UI', 8, 'bold')).pack(anchor='w')
        self.bpm_var = tk.DoubleVar(value=self.pattern_manager.bpm)
        self.bpm_scale = tk.Scale(tempo_frame, from_=MIN_BPM, to=MAX_BPM,
                                  orient='horizontal', length=180, resolution=1,
                                  variable=self.bpm_var, command=self._on_bpm_change,
                                  bg=COLORS['control_bg'], fg=COLORS['dark'],
                                  troughcolor=COLORS['grid_empty'],
                                  highlightthickness=0, sliderrelief='flat')
        self.bpm_scale.pack()

        # Swing (display only)
        swing_frame = tk.Frame(transport, bg=COLORS['control_bg'])
        swing_frame.pack(side='left', padx=8)
        self.swing_label = tk.Label(swing_frame, text=f"SWING {self.pattern_manager.swing}%",
                                    bg=COLORS['control_bg'], fg=COLORS['dark'],
                                    font=('Segoe UI', 8, 'bold'))
        self.swing_label.pack(anchor='w')
        self.swing_var = tk.IntVar(value=self.pattern_manager.swing)
        tk.Scale(swing_frame, from_=0, to=100, orient='horizontal', length=120,
                 variable=self.swing_var, command=self._on_swing_change,
                 showvalue=False, bg=COLORS['control_bg'],
                 troughcolor=COLORS['grid_empty'], highlightthickness=0,
                 sliderrelief='flat').pack()

    def _build_grid(self, parent):
        """One row per track: mute toggle plus 16 steps"""
        grid_frame = tk.Frame(parent, bg=COLORS['panel'], padx=8, pady=8)
        grid_frame.pack(fill='x')

        self.step_rows = {}
        self.mute_buttons = {}
        for track in self.pattern_manager.tracks:
            row = tk.Frame(grid_frame, bg=COLORS['panel'])
            row.pack(fill='x', pady=2)

            mute = ToggleButton(row, text="M",
                                command=lambda enabled, k=track.kind: self._on_mute(k, enabled))
            mute.pack(side='left', padx=(0, 6))
            self.mute_buttons[track.kind] = mute

            step_row = StepRow(row, label=track.name,
                               color=self.TRACK_COLORS.get(track.kind, COLORS['accent']),
                               command=lambda step, k=track.kind: self._on_step_toggle(k, step))
            step_row.pack(side='left')
            self.step_rows[track.kind] = step_row

    # ============== Audio ==============

    def _on_first_interaction(self, event=None):
        """Open the audio output on the first user gesture"""
        if self.engine.is_ready:
            return
        if self.engine.init():
            self.audio_status_label.config(text=f"audio on ({self.sample_rate} Hz)",
                                           fg=COLORS['dark'])
        else:
            self.audio_status_label.config(text="audio unavailable", fg=COLORS['snare'])

    # ============== Callbacks ==============

    def _on_play_toggle(self):
        self._on_first_interaction()
        playing = self.scheduler.toggle()
        self.play_button.set_text("■" if playing else "▶")
        self.play_button.set_active(playing)
        self._update_lcd()

    def _on_clear(self):
        self.pattern_manager.clear()
        self._update_pattern_editors()

    def _on_bpm_change(self, value):
        if self.updating_ui:
            return
        applied = self.pattern_manager.set_bpm(float(value))
        if applied != float(value):
            self.updating_ui = True
            self.bpm_var.set(applied)
            self.updating_ui = False
        self._update_lcd()

    def _on_swing_change(self, value):
        self.pattern_manager.set_swing(int(float(value)))
        self.swing_label.config(text=f"SWING {self.pattern_manager.swing}%")

    def _on_mute(self, kind, muted):
        self.pattern_manager.set_muted(kind, muted)
        self._update_pattern_editors()

    def _on_step_toggle(self, kind, step):
        self.pattern_manager.toggle_step(kind, step)
        self._update_pattern_editors()

    # ============== Display ==============

    def _update_pattern_editors(self):
        """Refresh rows and mute buttons from the store"""
        for track in self.pattern_manager.tracks:
            self.step_rows[track.kind].set_steps(track.steps, track.muted)
            if self.mute_buttons[track.kind].get_value() != track.muted:
                self.mute_buttons[track.kind].set_value(track.muted)
        self._update_lcd()

    def _update_lcd(self):
        snapshot = self.pattern_manager.snapshot()
        playing = self.scheduler.is_playing
        step = self.scheduler.current_step if playing else 0
        self.lcd.update_state(snapshot.tempo, playing, step,
                              [(track.steps, track.muted) for track in snapshot.tracks])

    def _ui_update_tick(self):
        """Periodic UI update tick - runs on main thread only"""
        position = self.scheduler.current_step if self.scheduler.is_playing else None
        for step_row in self.step_rows.values():
            step_row.set_current_position(position)
        self._update_lcd()

        self.ui_update_timer = self.root.after(self.UI_UPDATE_MS, self._ui_update_tick)

    # ============== Shutdown ==============

    def _on_close(self):
        self._shutdown()
        self.root.destroy()

    def _shutdown(self):
        """Stop transport and audio"""
        if self.ui_update_timer:
            try:
                self.root.after_cancel(self.ui_update_timer)
            except tk.TclError:
                pass
            self.ui_update_timer = None
        self.scheduler.stop()
        self.engine.close()

    def run(self):
        """Run the application"""
        try:
            self.root.mainloop()
        finally:
            self._shutdown()


def main():
    """Main entry point"""
    app = PocketBeatGUI()
    app.run()


if __name__ == '__main__':
    main()
