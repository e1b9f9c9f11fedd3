# =============================================================================
# Prize Wheel
# A Pygame host for the Twitch "!join" prize wheel.
#
# Viewers type !join in chat while the join window is open; the operator then
# closes the window and spins. The wheel slows under friction and the slice
# under the pointer wins. Holding the spin control for a second afterwards
# clears the wheel for the next round.
#
# This module only draws what SessionController.tick() reports and forwards
# input to it. All wheel and roster state lives in the session.
#
# Controls:
# - SPACE / LEFT CLICK:  Spin the wheel. Hold for 1s after a win to reset.
# - RIGHT CLICK / O:     Open or close the join window.
# - Q / ESC:             Quit the application.
# =============================================================================

import logging
import math
import os

import pygame

from prizewheel.session import InputSource, SessionController, Snapshot
from prizewheel.wheel import Phase, TWO_PI

logger = logging.getLogger(__name__)

# =============================================================================
# --- DISPLAY CONFIGURATION ---
# =============================================================================

CLICK_SOUND = "tick.wav"     # Played each time a new slice passes the pointer.

FULLSCREEN = False
WINDOW_SIZE = (1280, 800)
FPS = 120
MARGIN_PX = 40
NAME_PANEL_FRAC = 0.28       # Width of the entry list on the left, as a fraction of the window.

POINTER_JIGGLE_DURATION_SEC = 0.25
POINTER_JIGGLE_STRENGTH_PX  = 8
BANNER_SLIDE_SEC  = 0.35     # Winner banner slide-in time.
BANNER_LETTER_SEC = 0.07     # Winner name is revealed one letter at a time.

FONT_WHEEL  = "Arial Black"
FONT_LIST   = "Arial"
FONT_STATUS = "Consolas"

FONT_SIZES = {
    "wheel": 28,
    "list": 30,
    "list_title": 40,
    "status": 26,
    "timer": 64,
    "banner": 60,
}

COLOR_BG         = (14, 60, 30)
COLOR_BLACK      = (0, 0, 0)
COLOR_WHITE      = (255, 255, 255)
COLOR_GOLD       = (255, 215, 0)
COLOR_OPEN       = (0, 200, 0)
COLOR_CLOSED     = (200, 0, 0)
COLOR_BANNER     = (34, 132, 60)
COLOR_EMPTY      = (60, 60, 60)

# Pygame event -> session action
ACTION_PRIMARY_DOWN = "primary_down"
ACTION_PRIMARY_UP   = "primary_up"
ACTION_TOGGLE       = "toggle"
ACTION_QUIT         = "quit"


# ========= EASING =========

def ease_out_cubic(x: float) -> float:
    """Cubic easing: starts fast, slows down to a stop. Used for the banner slide."""
    x = max(0.0, min(1.0, x))
    return 1 - pow(1 - x, 3)

def ease_out_back(x: float) -> float:
    """Overshoot easing for the pointer jiggle."""
    c1 = 1.70158
    c3 = c1 + 1
    return 1 + c3 * pow(x - 1, 3) + c1 * pow(x - 1, 2)


# ========= INPUT =========

def translate_event(event):
    """
    Maps one pygame event to (action, source), or None if the wheel doesn't care.
    Source is only meaningful for the primary (spin / hold-to-reset) control.
    """
    if event.type == pygame.QUIT:
        return ACTION_QUIT, None
    if event.type == pygame.KEYDOWN:
        if event.key in (pygame.K_ESCAPE, pygame.K_q):
            return ACTION_QUIT, None
        if event.key == pygame.K_SPACE:
            return ACTION_PRIMARY_DOWN, InputSource.KEYBOARD
        if event.key == pygame.K_o:
            return ACTION_TOGGLE, None
    elif event.type == pygame.KEYUP:
        if event.key == pygame.K_SPACE:
            return ACTION_PRIMARY_UP, InputSource.KEYBOARD
    elif event.type == pygame.MOUSEBUTTONDOWN:
        if event.button == 1:
            return ACTION_PRIMARY_DOWN, InputSource.POINTER
        if event.button == 3:
            return ACTION_TOGGLE, None
    elif event.type == pygame.MOUSEBUTTONUP:
        if event.button == 1:
            return ACTION_PRIMARY_UP, InputSource.POINTER
    return None


def apply_action(controller: SessionController, action, source) -> bool:
    """Forwards a translated action to the controller. Returns False on quit."""
    if action == ACTION_QUIT:
        return False
    if action == ACTION_PRIMARY_DOWN:
        controller.primary_down(source)
    elif action == ACTION_PRIMARY_UP:
        controller.primary_up(source)
    elif action == ACTION_TOGGLE:
        controller.toggle_join_window()
    return True


# ========= UI HELPERS =========

def blit_center(surface, img, center):
    """Draws an image onto a surface, with the image's center at the specified coordinate."""
    surface.blit(img, img.get_rect(center=center))

def readable_text_color(bg):
    """Black or white, whichever reads better on `bg`."""
    lum = 0.2126 * bg[0] + 0.7152 * bg[1] + 0.0722 * bg[2]
    return COLOR_WHITE if lum < 120 else COLOR_BLACK

def draw_sector(surface, color, center, radius, start, end, segments=24):
    """Filled pie slice between two angles (radians, screen coordinates)."""
    cx, cy = center
    pts = [(cx, cy)]
    for i in range(segments + 1):
        a = start + (end - start) * i / segments
        pts.append((cx + radius * math.cos(a), cy + radius * math.sin(a)))
    pygame.draw.polygon(surface, color, pts)

def draw_animated_pointer(surface, cx, top_y, anim_progress):
    """Draws the pointer at 12 o'clock, kicked up when a slice passes and falling back."""
    y_offset = POINTER_JIGGLE_STRENGTH_PX * ease_out_back(1.0 - anim_progress)
    tip_y  = top_y + 30 + POINTER_JIGGLE_STRENGTH_PX - y_offset
    base_y = tip_y - 45
    half_w = 18
    tip, left, right = (cx, tip_y), (cx - half_w, base_y), (cx + half_w, base_y)
    pygame.draw.polygon(surface, COLOR_BLACK, (tip, left, right))
    pygame.draw.polygon(surface, COLOR_WHITE, (tip, left, right), width=3)


# ========= GAME =========

class Game:
    """Window, event pump and renderer around a SessionController."""

    def __init__(self, controller: SessionController, button=None, fullscreen=FULLSCREEN):
        pygame.mixer.pre_init(44100, -16, 2, 512)
        pygame.init()
        self.controller = controller
        self.button = button
        self.clock = pygame.time.Clock()

        # --- Display Setup ---
        flags = 0
        if fullscreen:
            flags |= pygame.FULLSCREEN
            info = pygame.display.Info()
            self.WINDOW_SIZE = (info.current_w, info.current_h)
        else:
            self.WINDOW_SIZE = WINDOW_SIZE
        self.screen = pygame.display.set_mode(self.WINDOW_SIZE, flags)
        pygame.display.set_caption("Prize Wheel — Space/Click:Spin (hold to reset) | Right-click:Join window | Q/Esc:Quit")

        # --- Geometry ---
        panel_w = int(self.WINDOW_SIZE[0] * NAME_PANEL_FRAC)
        self.panel_rect = pygame.Rect(0, 0, panel_w, self.WINDOW_SIZE[1])
        wheel_area_w = self.WINDOW_SIZE[0] - panel_w
        self.cx = panel_w + wheel_area_w // 2
        self.cy = self.WINDOW_SIZE[1] // 2 + 20
        self.wheel_radius = (min(wheel_area_w, self.WINDOW_SIZE[1]) - MARGIN_PX * 2) // 2 - 20

        self._init_fonts()
        self._load_assets()

        # --- Visual Effect State ---
        self.pulse_timer = 0.0
        self.last_active_idx = -1
        self.pointer_anim_progress = 1.0

    def _init_fonts(self):
        self.wheel_font      = pygame.font.SysFont(FONT_WHEEL, FONT_SIZES["wheel"])
        self.list_font       = pygame.font.SysFont(FONT_LIST, FONT_SIZES["list"])
        self.list_title_font = pygame.font.SysFont(FONT_LIST, FONT_SIZES["list_title"], bold=True)
        self.status_font     = pygame.font.SysFont(FONT_STATUS, FONT_SIZES["status"])
        self.timer_font      = pygame.font.SysFont(FONT_STATUS, FONT_SIZES["timer"], bold=True)
        self.banner_font     = pygame.font.SysFont(FONT_WHEEL, FONT_SIZES["banner"])

    def _load_assets(self):
        self.click_sound = None
        if CLICK_SOUND and os.path.exists(CLICK_SOUND):
            try:
                self.click_sound = pygame.mixer.Sound(CLICK_SOUND)
            except pygame.error as e:
                logger.warning("Could not load sound '%s': %s", CLICK_SOUND, e)

    def run(self):
        logger.info("Ready. Right-click to open the join window, SPACE to spin.")
        dt = 0.0
        running = True
        while running:
            running = self._handle_events()
            snap = self._update_state(dt)
            self._draw(snap)
            dt = self.clock.tick(FPS) / 1000.0
        pygame.quit()

    def _handle_events(self):
        for event in pygame.event.get():
            translated = translate_event(event)
            if translated is None:
                continue
            if not apply_action(self.controller, *translated):
                return False
        return True

    def _update_state(self, dt) -> Snapshot:
        if self.button is not None:
            self.button.drain(self.controller)
        snap = self.controller.tick(dt)
        self.pulse_timer += dt

        if self.pointer_anim_progress < 1.0:
            self.pointer_anim_progress = min(1.0, self.pointer_anim_progress + dt / POINTER_JIGGLE_DURATION_SEC)

        # Tick sound and pointer kick whenever a new slice reaches the pointer.
        if snap.active_index != self.last_active_idx:
            if snap.active_index >= 0:
                self.pointer_anim_progress = 0.0
                if self.click_sound:
                    self.click_sound.play()
            self.last_active_idx = snap.active_index
        return snap

    # ========= DRAWING =========

    def _draw(self, snap: Snapshot):
        self.screen.fill(COLOR_BG)
        self._draw_name_panel(snap)
        self._draw_wheel(snap)
        draw_animated_pointer(self.screen, self.cx, self.cy - self.wheel_radius - 40, self.pointer_anim_progress)
        self._draw_status(snap)
        self._draw_reset_hold(snap)
        if snap.winner is not None:
            self._draw_winner_banner(snap)
        pygame.display.flip()

    def _draw_wheel(self, snap: Snapshot):
        center = (self.cx, self.cy)
        pygame.draw.circle(self.screen, (0, 0, 0), (self.cx - 8, self.cy + 10), self.wheel_radius + 6)
        n = len(snap.roster)
        if n == 0:
            pygame.draw.circle(self.screen, COLOR_EMPTY, center, self.wheel_radius)
        else:
            slice_w = TWO_PI / n
            for i, entry in enumerate(snap.roster):
                start = snap.angle + i * slice_w
                color = entry.color[:3]
                if i == snap.active_index:
                    color = COLOR_WHITE
                elif i == snap.winner_index and snap.flash_on:
                    color = COLOR_GOLD
                draw_sector(self.screen, color, center, self.wheel_radius, start, start + slice_w)
                self._draw_label(entry.name, color, start + slice_w / 2, slice_w)
            if n > 1:
                for i in range(n):
                    a = snap.angle + i * slice_w
                    edge = (self.cx + self.wheel_radius * math.cos(a), self.cy + self.wheel_radius * math.sin(a))
                    pygame.draw.line(self.screen, COLOR_BLACK, center, edge, 2)
            if snap.phase is Phase.CELEBRATING and snap.winner_index >= 0:
                self._draw_winning_slice_pulse(snap, slice_w)
        pygame.draw.circle(self.screen, COLOR_BLACK, center, self.wheel_radius, width=6)
        pygame.draw.circle(self.screen, COLOR_WHITE, center, max(12, self.wheel_radius // 9))
        pygame.draw.circle(self.screen, COLOR_BLACK, center, max(12, self.wheel_radius // 9), width=3)

    def _draw_label(self, name, bg, mid_angle, slice_w):
        """Names are painted along the slice, reading outward from the hub."""
        surf = self.wheel_font.render(name, True, readable_text_color(bg))
        max_len = self.wheel_radius * 0.62
        max_thick = 2 * self.wheel_radius * 0.6 * math.sin(min(slice_w, math.pi) / 2)
        scale = min(1.0, max_len / max(1, surf.get_width()), max_thick / max(1, surf.get_height())) * 0.95
        if scale < 1.0:
            surf = pygame.transform.smoothscale(surf, (max(1, int(surf.get_width() * scale)), max(1, int(surf.get_height() * scale))))
        rotated = pygame.transform.rotate(surf, -math.degrees(mid_angle))
        r = self.wheel_radius * 0.6
        blit_center(self.screen, rotated, (self.cx + r * math.cos(mid_angle), self.cy + r * math.sin(mid_angle)))

    def _draw_winning_slice_pulse(self, snap: Snapshot, slice_w):
        """Pulsing gold outline over the winning slice, which sits under the pointer."""
        start = snap.angle + snap.winner_index * slice_w
        pulse = (math.sin(self.pulse_timer * 6.0) + 1) / 2
        overlay = pygame.Surface(self.WINDOW_SIZE, pygame.SRCALPHA)
        draw_sector(overlay, (*COLOR_GOLD, int(40 + pulse * 80)), (self.cx, self.cy), self.wheel_radius, start, start + slice_w)
        self.screen.blit(overlay, (0, 0))

    def _draw_name_panel(self, snap: Snapshot):
        pygame.draw.rect(self.screen, (10, 40, 20), self.panel_rect)
        title = self.list_title_font.render(f"Entries ({len(snap.roster)})", True, COLOR_WHITE)
        self.screen.blit(title, (24, 24))
        y = 24 + title.get_height() + 12
        for i, entry in enumerate(snap.roster):
            if y > self.WINDOW_SIZE[1] - 40:
                more = self.list_font.render(f"... +{len(snap.roster) - i} more", True, (200, 200, 200))
                self.screen.blit(more, (24, y))
                break
            pygame.draw.circle(self.screen, entry.color[:3], (34, y + 16), 9)
            color = COLOR_GOLD if i == snap.winner_index else COLOR_WHITE
            self.screen.blit(self.list_font.render(entry.name, True, color), (52, y))
            y += self.list_font.get_height() + 4

    def _draw_status(self, snap: Snapshot):
        label, color = ("OPEN — type !join", COLOR_OPEN) if snap.join_window_open else ("CLOSED", COLOR_CLOSED)
        status = self.status_font.render(f"Join: {label}", True, color)
        self.screen.blit(status, status.get_rect(bottomright=(self.WINDOW_SIZE[0] - 24, self.WINDOW_SIZE[1] - 20)))
        if snap.join_window_open:
            secs = int(math.ceil(snap.join_window_remaining))
            timer = self.timer_font.render(f"{secs // 60}:{secs % 60:02d}", True, COLOR_WHITE)
            self.screen.blit(timer, timer.get_rect(topright=(self.WINDOW_SIZE[0] - 24, 20)))

    def _draw_reset_hold(self, snap: Snapshot):
        """Progress ring around the hub while a reset is being held."""
        if not snap.reset_gesture_active:
            return
        frac = min(1.0, snap.reset_gesture_elapsed / self.controller.gesture.hold_seconds)
        r = max(12, self.wheel_radius // 9) + 14
        rect = pygame.Rect(self.cx - r, self.cy - r, r * 2, r * 2)
        # pygame arcs run counter-clockwise from the start angle; start at 12 o'clock.
        pygame.draw.arc(self.screen, COLOR_GOLD, rect, math.pi / 2, math.pi / 2 + frac * TWO_PI, 8)

    def _draw_winner_banner(self, snap: Snapshot):
        """Green banner slides in from the right, then the name appears letter by letter."""
        t = snap.celebration_elapsed
        bar_w = self.wheel_radius * 2.1
        bar_h = 90
        p = ease_out_cubic(t / BANNER_SLIDE_SEC)
        start_x = self.WINDOW_SIZE[0] + bar_w * 0.6
        end_x = self.cx
        bar_cx = start_x + (end_x - start_x) * p
        bar_cy = self.cy + self.wheel_radius * 0.1
        rect = pygame.Rect(0, 0, bar_w, bar_h)
        rect.center = (bar_cx, bar_cy)
        pygame.draw.rect(self.screen, COLOR_BLACK, rect, border_radius=14)
        pygame.draw.rect(self.screen, COLOR_BANNER, rect.inflate(-4, -4), border_radius=13)

        if t < BANNER_SLIDE_SEC:
            return
        name = snap.winner.name
        shown = min(len(name), int((t - BANNER_SLIDE_SEC) / BANNER_LETTER_SEC) + 1)
        blit_center(self.screen, self.banner_font.render(name[:shown], True, COLOR_WHITE), rect.center)
