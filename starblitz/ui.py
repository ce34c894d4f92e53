from __future__ import annotations

import pygame
import pygame_gui
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from .content import Content
from .context import GameEvent
from .progression import Progression


class GameUI:
    def __init__(self, width: int, height: int, content: Content) -> None:
        theme_path = Path('assets/ui/theme.json')
        self.manager = pygame_gui.UIManager((width, height), theme_path if theme_path.exists() else None)
        self.width = width
        self.height = height
        self.content = content
        self.on_unlock: Optional[Callable[[str, str], bool]] = None

        # HUD elements
        self.hud_panel: Optional[pygame_gui.elements.UIPanel] = None
        self.hp_bar: Optional[pygame_gui.elements.UIProgressBar] = None
        self.xp_bar: Optional[pygame_gui.elements.UIProgressBar] = None
        self.ult_bar: Optional[pygame_gui.elements.UIProgressBar] = None
        self.level_label: Optional[pygame_gui.elements.UILabel] = None
        self.score_label: Optional[pygame_gui.elements.UILabel] = None
        self.combo_label: Optional[pygame_gui.elements.UILabel] = None
        # Banner
        self.banner_label: Optional[pygame_gui.elements.UILabel] = None
        self.banner_time_left: float = 0.0
        # Skill tree
        self.skill_window: Optional[pygame_gui.elements.UIWindow] = None
        self.skill_points_label: Optional[pygame_gui.elements.UILabel] = None
        self.skill_buttons: Dict[pygame_gui.elements.UIButton, Tuple[str, str]] = {}
        self.progression: Optional[Progression] = None

    def process_event(self, event: pygame.event.Event) -> None:
        self.manager.process_events(event)
        if event.type == pygame_gui.UI_BUTTON_PRESSED and event.ui_element in self.skill_buttons:
            category, name = self.skill_buttons[event.ui_element]
            if self.on_unlock is not None and self.on_unlock(category, name):
                self._refresh_skill_tree()
        elif event.type == pygame_gui.UI_WINDOW_CLOSE and event.ui_element == self.skill_window:
            self.skill_window = None
            self.skill_buttons.clear()

    def update(self, dt: float) -> None:
        self.manager.update(dt)
        if self.banner_time_left > 0:
            self.banner_time_left -= dt
            if self.banner_time_left <= 0 and self.banner_label is not None:
                self.banner_label.kill()
                self.banner_label = None

    def draw(self, surface: pygame.Surface) -> None:
        self.manager.draw_ui(surface)

    def reset(self) -> None:
        self.close_skill_tree()
        self.progression = None
        self.show_banner("New game", 1.5)

    def on_event(self, event: GameEvent) -> None:
        data = event.data
        if event.kind == "hud":
            self.update_hud(data)
        elif event.kind == "level_up":
            self.show_banner(f"Level {data['level']}! Skill points: {data['skill_points']}")
            self._refresh_skill_tree()
        elif event.kind == "achievement":
            self.show_banner(f"Achievement unlocked: {data['name']}")
        elif event.kind == "ability" and data.get("active"):
            self.show_banner(str(data["kind"]).replace("_", " ").title(), 1.5)
        elif event.kind == "boss":
            self.show_banner("Boss incoming!")
        elif event.kind == "game_over":
            self.show_banner(f"Game over - score {data['score']}", 10.0)

    # HUD helpers
    def ensure_hud(self) -> None:
        if self.hud_panel is not None:
            return
        self.hud_panel = pygame_gui.elements.UIPanel(pygame.Rect(10, 10, 300, 86), manager=self.manager)
        pygame_gui.elements.UILabel(pygame.Rect(4, 0, 30, 18), text='HP', manager=self.manager, container=self.hud_panel)
        self.hp_bar = pygame_gui.elements.UIProgressBar(pygame.Rect(34, 2, 160, 14), manager=self.manager, container=self.hud_panel)
        pygame_gui.elements.UILabel(pygame.Rect(4, 20, 30, 18), text='XP', manager=self.manager, container=self.hud_panel)
        self.xp_bar = pygame_gui.elements.UIProgressBar(pygame.Rect(34, 22, 160, 14), manager=self.manager, container=self.hud_panel)
        pygame_gui.elements.UILabel(pygame.Rect(4, 40, 30, 18), text='ULT', manager=self.manager, container=self.hud_panel)
        self.ult_bar = pygame_gui.elements.UIProgressBar(pygame.Rect(34, 42, 160, 14), manager=self.manager, container=self.hud_panel)
        self.level_label = pygame_gui.elements.UILabel(pygame.Rect(200, 0, 90, 18), text='Lv 1', manager=self.manager, container=self.hud_panel)
        self.combo_label = pygame_gui.elements.UILabel(pygame.Rect(200, 20, 90, 18), text='Combo 0', manager=self.manager, container=self.hud_panel)
        self.score_label = pygame_gui.elements.UILabel(pygame.Rect(4, 62, 290, 18), text='Score 0', manager=self.manager, container=self.hud_panel)

    def update_hud(self, snap: dict) -> None:
        self.ensure_hud()
        self.hp_bar.set_current_progress(int(100 * max(0.0, min(1.0, snap['health'] / max(1, snap['max_health'])))))
        self.xp_bar.set_current_progress(int(100 * max(0.0, min(1.0, snap['experience'] / max(1, snap['experience_to_next'])))))
        self.ult_bar.set_current_progress(int(snap['ultimate']))
        self.level_label.set_text(f"Lv {snap['level']}")
        self.combo_label.set_text(f"Combo {snap['combo']}")
        self.score_label.set_text(f"Score {snap['score']}  Skill points {snap['skill_points']}")

    def show_banner(self, text: str, seconds: float = 3.0) -> None:
        if not text:
            return
        if self.banner_label is not None:
            self.banner_label.kill()
        width = min(600, self.width - 40)
        x = (self.width - width) // 2
        self.banner_label = pygame_gui.elements.UILabel(pygame.Rect(x, 10, width, 30), text=text, manager=self.manager)
        self.banner_time_left = seconds

    # Skill tree
    def toggle_skill_tree(self, progression: Progression) -> None:
        if self.skill_window is not None:
            self.close_skill_tree()
            return
        self.progression = progression
        w, h = 560, 420
        x, y = (self.width - w) // 2, (self.height - h) // 2
        self.skill_window = pygame_gui.elements.UIWindow(rect=pygame.Rect(x, y, w, h), window_display_title='Skill Tree', manager=self.manager)
        self.skill_points_label = pygame_gui.elements.UILabel(pygame.Rect(10, 6, 300, 22), text='', manager=self.manager, container=self.skill_window)
        col_w = 172
        for col, (category, skills) in enumerate(self.content.skills.items()):
            bx = 10 + col * (col_w + 8)
            pygame_gui.elements.UILabel(pygame.Rect(bx, 32, col_w, 22), text=category.title(), manager=self.manager, container=self.skill_window)
            for row, (name, skill) in enumerate((skills or {}).items()):
                btn = pygame_gui.elements.UIButton(
                    relative_rect=pygame.Rect(bx, 58 + row * 46, col_w, 40),
                    text='', manager=self.manager, container=self.skill_window,
                    tool_tip_text=str(skill.get('description', '')),
                )
                self.skill_buttons[btn] = (category, name)
        self._refresh_skill_tree()

    def close_skill_tree(self) -> None:
        if self.skill_window is not None:
            self.skill_window.kill()
            self.skill_window = None
            self.skill_buttons.clear()

    def _refresh_skill_tree(self) -> None:
        if self.skill_window is None or self.progression is None:
            return
        self.skill_points_label.set_text(f'Skill points: {self.progression.skill_points}')
        for btn, (category, name) in self.skill_buttons.items():
            cost = self.content.skill(category, name).get('cost', 0)
            owned = name in self.progression.unlocked_skills
            label = name.replace('_', ' ').title()
            btn.set_text(f'{label} ✓' if owned else f'{label} ({cost})')
            if owned or self.progression.skill_points < int(cost):
                btn.disable()
            else:
                btn.enable()
