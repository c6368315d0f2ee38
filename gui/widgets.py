"""
Custom Widgets for the PocketBeat GUI
Buttons, step rows and the LCD, drawn on canvases in a pocket-synth style
"""

import tkinter as tk


COLORS = {
    'bg': '#f0f0e8',
    'panel': '#e3e3dc',
    'control_bg': '#d8d8d1',
    'dark': '#2a2a2a',
    'text_dim': '#7a7a72',
    'accent': '#ff5800',
    'grid_empty': '#dcdcdc',
    'grid_beat': '#c8c8c0',
    'playhead': '#44cc66',
    'lcd_bg': '#9fae8f',
    'lcd_fg': '#1f2a1a',
    'lcd_dim': '#85947a',
    'kick': '#ff5800',
    'snare': '#ef4444',
    'hihat': '#eab308',
    'clap': '#3b82f6',
}


class CircularButton(tk.Canvas):
    """
    Round transport key with a drop shadow

    The key sinks onto its shadow while held and fires on release, like the
    rubber keys of a pocket synth.
    """

    SHADOW = 3

    def __init__(self, parent, text="", size=44, command=None,
                 bg_color='#e5e5e0', fg_color='#2a2a2a', **kwargs):
        super().__init__(parent, width=size + self.SHADOW, height=size + self.SHADOW,
                         bg=COLORS['control_bg'], highlightthickness=0, **kwargs)

        self.size = size
        self.text = text
        self.command = command
        self.key_color = bg_color
        self.label_color = fg_color
        self.active = False
        self.pressed = False

        self._draw()

        self.bind('<ButtonPress-1>', self._on_press)
        self.bind('<ButtonRelease-1>', self._on_release)

    def _draw(self):
        self.delete('all')
        s = self.size
        offset = self.SHADOW if self.pressed else 0

        self.create_oval(self.SHADOW, self.SHADOW, s + self.SHADOW - 1, s + self.SHADOW - 1,
                         fill=COLORS['dark'], outline='')
        self.create_oval(offset + 1, offset + 1, s + offset - 1, s + offset - 1,
                         fill=self.key_color, outline=COLORS['dark'], width=2)
        if self.active:
            # Running indicator ring
            self.create_oval(offset + 6, offset + 6, s + offset - 6, s + offset - 6,
                             outline=COLORS['playhead'], width=2)
        self.create_text(s // 2 + offset, s // 2 + offset, text=self.text,
                         fill=self.label_color, font=('Segoe UI', 12, 'bold'))

    def _on_press(self, event):
        self.pressed = True
        self._draw()

    def _on_release(self, event):
        was_pressed = self.pressed
        self.pressed = False
        self._draw()
        inside = 0 <= event.x <= self.size + self.SHADOW and 0 <= event.y <= self.size + self.SHADOW
        if was_pressed and inside and self.command:
            self.command()

    def set_active(self, active):
        """Light or clear the running ring"""
        self.active = active
        self._draw()

    def set_text(self, text):
        self.text = text
        self._draw()


class ToggleButton(tk.Canvas):
    """
    Latching key with an LED, used as the per-track mute

    The LED sits left of the label and lights in led_color while enabled;
    command(enabled) is called after every click.
    """

    def __init__(self, parent, text="", width=40, height=22,
                 command=None, led_color=None, **kwargs):
        super().__init__(parent, width=width, height=height,
                         bg=COLORS['panel'], highlightthickness=0, **kwargs)

        self.text = text
        self.btn_width = width
        self.btn_height = height
        self.led_color = led_color or COLORS['snare']
        self.enabled = False
        self.command = command

        self._draw()

        self.bind('<Button-1>', self._on_click)

    def _draw(self):
        self.delete('all')
        w, h = self.btn_width, self.btn_height
        r = h // 2 - 1

        # Pill outline
        face = '#d0d0c8' if self.enabled else '#f6f6f0'
        self.create_oval(1, 1, 2 * r + 1, h - 1, fill=face, outline=COLORS['dark'])
        self.create_oval(w - 2 * r - 2, 1, w - 2, h - 1, fill=face, outline=COLORS['dark'])
        self.create_rectangle(r + 1, 1, w - r - 2, h - 1, fill=face, outline='')
        self.create_line(r + 1, 1, w - r - 2, 1, fill=COLORS['dark'])
        self.create_line(r + 1, h - 1, w - r - 2, h - 1, fill=COLORS['dark'])

        led = self.led_color if self.enabled else COLORS['grid_beat']
        self.create_oval(6, h // 2 - 3, 12, h // 2 + 3, fill=led, outline='')
        self.create_text((w + 12) // 2, h // 2, text=self.text,
                         fill=COLORS['dark'] if self.enabled else COLORS['text_dim'],
                         font=('Consolas', 8, 'bold'))

    def _on_click(self, event):
        self.enabled = not self.enabled
        self._draw()

        if self.command:
            self.command(self.enabled)

    def set_value(self, enabled):
        """Set enabled state"""
        self.enabled = enabled
        self._draw()

    def get_value(self):
        """Get enabled state"""
        return self.enabled


class StepRow(tk.Canvas):
    """
    One track of the grid: label plus 16 step cells with a playhead

    Clicking a cell calls command(step_index); dragging paints across cells
    with the value set by the first click.
    """

    def __init__(self, parent, label="", color='#ff5800', num_steps=16,
                 command=None, **kwargs):
        step_width = 30
        height = 34
        label_width = 40

        super().__init__(parent, width=num_steps * step_width + label_width, height=height,
                         bg=COLORS['panel'], highlightthickness=0, **kwargs)

        self.label = label
        self.color = color
        self.num_steps = num_steps
        self.step_width = step_width
        self.row_height = height
        self.label_width = label_width
        self.command = command

        # Display state
        self.steps = [False] * num_steps
        self.muted = False
        self.current_position = None  # None while stopped

        # Drag state
        self._drag_value = None
        self._last_drag_step = None

        self._draw()

        self.bind('<Button-1>', self._on_click)
        self.bind('<B1-Motion>', self._on_drag)
        self.bind('<ButtonRelease-1>', self._on_release)

    def set_steps(self, steps, muted=False):
        """Update from the pattern store"""
        steps = list(steps)
        muted = bool(muted)
        if steps != self.steps or muted != self.muted:
            self.steps = steps
            self.muted = muted
            self._draw()

    def set_current_position(self, position):
        """Update current playback position (None hides the playhead)"""
        if position != self.current_position:
            self.current_position = position
            self._draw()

    def _get_step_at_x(self, x):
        """Determine which step was clicked"""
        relative_x = x - self.label_width
        if relative_x < 0:
            return None
        step = int(relative_x / self.step_width)
        if 0 <= step < self.num_steps:
            return step
        return None

    def _draw(self):
        self.delete('all')

        self.create_text(6, self.row_height // 2, text=self.label, anchor='w',
                         fill=COLORS['text_dim'] if self.muted else COLORS['dark'],
                         font=('Consolas', 10, 'bold'))

        for i in range(self.num_steps):
            x0 = self.label_width + i * self.step_width + 2
            x1 = x0 + self.step_width - 4
            y0, y1 = 4, self.row_height - 4

            if self.steps[i]:
                fill = COLORS['grid_beat'] if self.muted else self.color
            else:
                # Quarter-note cells slightly darker
                fill = COLORS['grid_beat'] if i % 4 == 0 else COLORS['grid_empty']

            outline = COLORS['playhead'] if i == self.current_position else '#a8a8a0'
            width = 3 if i == self.current_position else 1
            self.create_rectangle(x0, y0, x1, y1, fill=fill, outline=outline, width=width)

    def _on_click(self, event):
        step = self._get_step_at_x(event.x)
        if step is None:
            return
        self._drag_value = not self.steps[step]
        self._last_drag_step = step
        if self.command:
            self.command(step)

    def _on_drag(self, event):
        """Paint steps while dragging"""
        if self._drag_value is None:
            return
        step = self._get_step_at_x(event.x)
        if step is None or step == self._last_drag_step:
            return
        self._last_drag_step = step
        if self.steps[step] != self._drag_value and self.command:
            self.command(step)

    def _on_release(self, event):
        """Handle drag end"""
        self._drag_value = None
        self._last_drag_step = None


class LCDScreen(tk.Canvas):
    """
    Status display: tempo, transport state, bar position and a mini grid
    """

    def __init__(self, parent, num_steps=16, width=520, height=110, **kwargs):
        super().__init__(parent, width=width, height=height,
                         bg=COLORS['lcd_bg'], highlightthickness=3,
                         highlightbackground=COLORS['dark'], **kwargs)
        self.lcd_width = width
        self.lcd_height = height
        self.num_steps = num_steps

        self.bpm = 0
        self.is_playing = False
        self.current_step = 0
        self.rows = []  # list of (steps, muted)

        self._draw()

    def update_state(self, bpm, is_playing, current_step, rows):
        rows = [(tuple(steps), bool(muted)) for steps, muted in rows]
        state = (bpm, is_playing, current_step, rows)
        if state != (self.bpm, self.is_playing, self.current_step, self.rows):
            self.bpm, self.is_playing, self.current_step, self.rows = state
            self._draw()

    def _draw(self):
        self.delete('all')
        fg = COLORS['lcd_fg']
        dim = COLORS['lcd_dim']

        self.create_text(12, 16, text=f"BPM {self.bpm:3.0f}", anchor='w',
                         fill=fg, font=('Consolas', 14, 'bold'))
        self.create_text(self.lcd_width - 12, 16,
                         text="PLAY" if self.is_playing else "STOP", anchor='e',
                         fill=fg, font=('Consolas', 12, 'bold'))

        beat = self.current_step // 4 + 1
        sixteenth = self.current_step % 4 + 1
        self.create_text(self.lcd_width // 2, 16, text=f"{beat}.{sixteenth}",
                         fill=fg if self.is_playing else dim,
                         font=('Consolas', 12))

        # Mini grid
        cell = (self.lcd_width - 24) / self.num_steps
        top = 34
        row_h = 16
        for r, (steps, muted) in enumerate(self.rows):
            y0 = top + r * row_h
            for i, on in enumerate(steps):
                x0 = 12 + i * cell
                if on:
                    fill = dim if muted else fg
                    self.create_rectangle(x0 + 2, y0 + 3, x0 + cell - 2, y0 + row_h - 3,
                                          fill=fill, outline='')

        if self.is_playing and self.rows:
            x0 = 12 + self.current_step * cell
            self.create_rectangle(x0, top, x0 + cell, top + len(self.rows) * row_h,
                                  outline=fg, width=1)
