import datetime
import logging
import os
import threading

import flet as ft

import contacts_auth as auth
from contacts_config import ReconcilerConfig, init_app
from contacts_importer import ImportOptions, export_backup, import_file, restore_backup
from contacts_merge import DuplicateStrategy
from contacts_parsers import CSV_PRESETS
from contacts_prompts import render_prompt
from contacts_reports import write_import_csv_report, write_import_report
from contacts_store import DEFAULT_USER, GoogleContactStore

LOGO_PATH = "assets/logo.png"

# -------------------------------
# 🎨 Palette: (light, dark)
# -------------------------------
PALETTE = {
    "brand": (ft.Colors.BLUE_600, ft.Colors.BLUE_800),
    "panel": (ft.Colors.GREY_50, ft.Colors.BLUE_GREY_900),
    "tile": (ft.Colors.GREY_100, ft.Colors.BLUE_GREY_800),
    "text": (ft.Colors.BLACK, ft.Colors.WHITE),
    "muted": (ft.Colors.GREY_700, ft.Colors.GREY_400),
    "ok": (ft.Colors.GREEN_600, ft.Colors.GREEN_400),
    "warn": (ft.Colors.ORANGE_700, ft.Colors.ORANGE_300),
    "bad": (ft.Colors.RED_700, ft.Colors.RED_300),
    "info": (ft.Colors.CYAN_700, ft.Colors.CYAN_300),
}

# Summary tiles: label, ImportResult counter, icon, palette key
SUMMARY_TILES = [
    ("Total", "total_count", ft.Icons.LIST, "brand"),
    ("Created", "success_count", ft.Icons.PERSON_ADD, "ok"),
    ("Updated", "updated_count", ft.Icons.SYNC_ALT, "info"),
    ("Skipped", "skipped_count", ft.Icons.SKIP_NEXT, "muted"),
    ("Failed", "failure_count", ft.Icons.ERROR, "bad"),
    ("Invalid", "invalid_count", ft.Icons.WARNING, "warn"),
]


def paint(page, key):
    light, dark = PALETTE[key]
    return dark if page.theme_mode == ft.ThemeMode.DARK else light


def main(page: ft.Page, config: ReconcilerConfig | None = None):
    page.title = "Contacts Reconciler"
    page.theme_mode = ft.ThemeMode.LIGHT
    page.window.width = 980
    page.window.height = 760
    page.window.min_width = 720
    page.window.min_height = 640
    page.scroll = ft.ScrollMode.AUTO
    page.padding = 20
    page.horizontal_alignment = ft.CrossAxisAlignment.STRETCH

    config = config or ReconcilerConfig()
    state = {"files": [], "store": None, "busy": False, "status_key": "muted"}
    # (control, attribute, palette key) triples recolored on theme change
    themed = []

    def tint(control, key, attr="color"):
        setattr(control, attr, paint(page, key))
        themed.append((control, attr, key))
        return control

    def heading(text):
        return tint(ft.Text(text, size=15, weight=ft.FontWeight.BOLD), "text")

    def panel(content, **kwargs):
        box = ft.Container(
            content=content,
            border_radius=10,
            padding=12,
            shadow=ft.BoxShadow(blur_radius=8, color=ft.Colors.BLACK12, offset=ft.Offset(0, 3)),
            **kwargs,
        )
        return tint(box, "panel", attr="bgcolor")

    def notify(message, key):
        page.open(ft.SnackBar(ft.Text(message), bgcolor=paint(page, key)))
        page.update()

    def refresh_theme():
        for control, attr, key in themed:
            setattr(control, attr, paint(page, key))
        api_status.color = paint(page, state["status_key"])
        if state.get("totals"):
            show_summary(state["totals"])

    def toggle_theme(e):
        dark = page.theme_mode == ft.ThemeMode.DARK
        page.theme_mode = ft.ThemeMode.LIGHT if dark else ft.ThemeMode.DARK
        refresh_theme()
        page.update()

    # ---------------------------
    # Header
    # ---------------------------
    logo = (
        ft.Image(src=LOGO_PATH, width=40, height=40)
        if os.path.exists(LOGO_PATH)
        else ft.Icon(ft.Icons.PERSON, size=40, color=ft.Colors.WHITE)
    )
    header = tint(
        ft.Container(
            ft.Row(
                [
                    logo,
                    ft.Column(
                        [
                            ft.Text("Contacts Reconciler", size=22, weight=ft.FontWeight.BOLD, color=ft.Colors.WHITE),
                            ft.Text("Duplicate-free imports into Google Contacts", size=13, color=ft.Colors.WHITE70),
                        ],
                        spacing=0,
                        expand=True,
                    ),
                    ft.IconButton(
                        icon=ft.Icons.BRIGHTNESS_6,
                        icon_color=ft.Colors.WHITE,
                        tooltip="Toggle theme",
                        on_click=toggle_theme,
                    ),
                ],
                vertical_alignment=ft.CrossAxisAlignment.CENTER,
            ),
            padding=ft.Padding(16, 12, 16, 12),
            border_radius=10,
        ),
        "brand",
        attr="bgcolor",
    )

    # ------------------------------------
    # Google account
    # ------------------------------------
    api_status = ft.Text("Not signed in.", size=13, color=paint(page, "muted"))

    def set_status(text, key):
        state["status_key"] = key
        api_status.value = text
        api_status.color = paint(page, key)
        page.update()

    def sign_in_click(e):
        # Runs in a separate thread
        set_status("Signing in... Please check your browser to authorize.", "muted")
        try:
            service = auth.build_people_service(config.client_secret_file)
            state["store"] = GoogleContactStore(service, config.default_folder)
            folders = state["store"].list_folders(DEFAULT_USER)
            set_status(f"✅ Connected. {len(folders)} contact folders found.", "ok")
        except Exception as err:
            logging.error(f"Sign-in failed: {err}")
            state["store"] = None
            set_status(f"Error: {err}", "bad")

    def sign_out_click(e):
        try:
            auth.clear_credentials()
            state["store"] = None
            set_status("Not signed in.", "muted")
            notify("Logged out. You can now sign in with a different account.", "info")
        except Exception as err:
            notify(f"Error: {err}", "bad")

    def action_button(label, icon, key, on_click):
        return ft.FilledButton(
            label,
            icon=icon,
            height=40,
            style=ft.ButtonStyle(
                color={ft.ControlState.DEFAULT: ft.Colors.WHITE},
                bgcolor={ft.ControlState.DEFAULT: paint(page, key)},
                shape=ft.RoundedRectangleBorder(radius=8),
            ),
            on_click=on_click,
        )

    def in_background(target):
        return lambda e: threading.Thread(target=target, args=(e,), daemon=True).start()

    sign_in_btn = action_button("Sign in to Google", ft.Icons.LOGIN, "brand", in_background(sign_in_click))
    sign_out_btn = ft.TextButton(
        "Switch Account",
        icon=ft.Icons.LOGOUT,
        on_click=sign_out_click,
        tooltip="Log out to connect with a different Google account",
    )

    # ------------------------------------
    # Input files
    # ------------------------------------
    file_list = ft.ListView(height=120, spacing=4)
    file_picker = ft.FilePicker(on_result=lambda e: pick_files(e))
    backup_picker = ft.FilePicker(on_result=lambda e: save_backup(e))
    page.overlay.extend([file_picker, backup_picker])

    csv_layout = ft.Dropdown(
        label="CSV layout",
        value=config.csv_mapping or "auto",
        options=[ft.dropdown.Option("auto", "Detect automatically")]
        + [ft.dropdown.Option(name) for name in CSV_PRESETS],
        dense=True,
    )

    def pick_files(e):
        known = {f["path"] for f in state["files"]}
        for f in e.files or []:
            if f.path not in known:
                state["files"].append({"name": f.name, "path": f.path})
                known.add(f.path)
        refresh_files()

    def file_row(i, f):
        return ft.Row(
            [
                ft.Icon(ft.Icons.INSERT_DRIVE_FILE, size=16, color=paint(page, "brand")),
                tint(ft.Text(f["name"], size=13, expand=True), "text"),
                ft.IconButton(
                    ft.Icons.CLOSE,
                    tooltip="Remove",
                    icon_size=16,
                    on_click=lambda e, idx=i: remove_file(idx),
                ),
            ]
        )

    def refresh_files():
        file_list.controls = [file_row(i, f) for i, f in enumerate(state["files"])]
        page.update()

    def remove_file(idx):
        state["files"].pop(idx)
        refresh_files()

    add_files_btn = action_button(
        "Add Files",
        ft.Icons.LIBRARY_ADD,
        "info",
        lambda _: file_picker.pick_files(allow_multiple=True, allowed_extensions=["csv", "vcf", "vcard", "json"]),
    )

    files_box = panel(
        ft.Column(
            [
                heading("👤 Google Account"),
                ft.Row([sign_in_btn, sign_out_btn], spacing=10),
                api_status,
                ft.Divider(height=10),
                ft.Row(
                    [heading("🗂 Files to Import (CSV, vCard, backup JSON):"), add_files_btn],
                    alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                ),
                csv_layout,
                file_list,
            ],
            spacing=8,
        ),
        expand=True,
    )

    # ---------------------------
    # Options & Actions
    # ---------------------------
    strategy = ft.RadioGroup(
        content=ft.Row(
            [
                ft.Radio(value=DuplicateStrategy.SKIP.value, label="Skip"),
                ft.Radio(value=DuplicateStrategy.OVERWRITE.value, label="Overwrite"),
                ft.Radio(value=DuplicateStrategy.MERGE.value, label="Merge"),
            ]
        ),
        value=config.duplicate_strategy.value,
    )
    interactive = ft.Checkbox(label="Ask me for each duplicate (Merge only)", value=config.interactive)
    dry = ft.Checkbox(label="Validate only", value=False)
    cross_folder = ft.Checkbox(label="Search all folders for duplicates", value=config.cross_folder_search)
    save_report = ft.Checkbox(label="Save report", value=True)
    default_folder_field = ft.TextField(label="Default folder", value=config.default_folder, dense=True)
    target_folder_field = ft.TextField(label="Import everything into folder (optional)", value="", dense=True)

    options_box = panel(
        ft.Column(
            [
                heading("⚙️ Options"),
                ft.Text("When a contact already exists:", size=12, weight=ft.FontWeight.BOLD),
                strategy,
                interactive,
                cross_folder,
                dry,
                save_report,
                ft.Divider(height=6),
                default_folder_field,
                target_folder_field,
                tint(ft.Text(f"{len(config.company_folders)} company → folder rules loaded.", size=12), "muted"),
            ],
            spacing=4,
        ),
        expand=True,
    )

    progress_ring = ft.ProgressRing(width=44, height=44, visible=False)
    progress_text = tint(ft.Text("", size=12), "muted")

    def ask(prompt):
        """Blocks the worker thread until the user picks an option in a dialog."""
        dialog_title, body, options = render_prompt(prompt)
        answered = threading.Event()
        reply = {}

        def choose(value):
            reply["value"] = value
            page.close(dlg)
            answered.set()

        dlg = ft.AlertDialog(
            modal=True,
            title=ft.Text(dialog_title, size=16, weight=ft.FontWeight.BOLD),
            content=ft.Column(
                [ft.Text(line, size=13, selectable=True) for line in body],
                tight=True,
                spacing=2,
                scroll=ft.ScrollMode.AUTO,
            ),
            actions=[ft.TextButton(label, on_click=lambda e, v=value: choose(v)) for value, label in options],
        )
        page.open(dlg)
        page.update()
        answered.wait()
        return reply["value"]

    def current_options():
        return ImportOptions(
            strategy=DuplicateStrategy(strategy.value),
            interactive=bool(interactive.value),
            default_folder=(default_folder_field.value or "").strip() or config.default_folder,
            company_folders=config.company_folders,
            target_folder=(target_folder_field.value or "").strip() or None,
            cross_folder_search=bool(cross_folder.value),
            validate_only=bool(dry.value),
        )

    def set_busy(busy, text=""):
        state["busy"] = busy
        progress_ring.visible = busy
        progress_text.value = text
        page.update()

    def run_import(e):
        if state["busy"]:
            return
        set_busy(True, "Importing...")
        try:
            store = state.get("store")
            if store is None:
                raise ValueError("Please sign in to Google before importing.")
            if not state["files"]:
                raise ValueError("Please add at least one file to import.")

            options = current_options()
            mapping = None if csv_layout.value == "auto" else csv_layout.value
            totals = dict.fromkeys((field for _, field, _, _ in SUMMARY_TILES), 0)
            ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")

            for i, it in enumerate(state["files"], 1):
                path = it["path"]
                set_busy(True, f"Importing {it['name']} ({i}/{len(state['files'])})...")
                if path.lower().endswith(".json"):
                    result = restore_backup(store, DEFAULT_USER, path, options, answer=ask)
                else:
                    result = import_file(store, DEFAULT_USER, path, options, mapping=mapping, answer=ask)

                for field in totals:
                    totals[field] += getattr(result, field)

                if save_report.value:
                    run_ts = f"{ts}_{i}"
                    write_import_report(result, run_ts, source=path, output_dir=config.output_dir)
                    write_import_csv_report(result, run_ts, output_dir=config.output_dir)

            set_busy(False)
            show_summary(totals)
            notify("✅ Validation complete!" if dry.value else "✅ Import complete!", "ok")

        except Exception as err:
            logging.error(f"Import failed: {err}")
            set_busy(False)
            notify(str(err), "bad")

    def run_backup(e):
        set_busy(True, "Backing up...")
        try:
            index = export_backup(state["store"], DEFAULT_USER, e.path, current_options().default_folder)
            set_busy(False)
            notify(f"✅ Backed up {len(index.contacts)} contacts.", "ok")
        except Exception as err:
            logging.error(f"Backup failed: {err}")
            set_busy(False)
            notify(str(err), "bad")

    def save_backup(e):
        if e.path:
            in_background(run_backup)(e)

    def start_backup(e):
        if state.get("store") is None:
            notify("Please sign in to Google before making a backup.", "warn")
            return
        ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_picker.save_file(file_name=f"contacts_backup_{ts}.json", allowed_extensions=["json"])

    actions_box = panel(
        ft.Column(
            [
                heading("▶️ Actions"),
                ft.Row(
                    [
                        action_button("Start Import", ft.Icons.PLAY_ARROW, "ok", in_background(run_import)),
                        action_button("Backup", ft.Icons.SAVE, "brand", start_backup),
                    ],
                    alignment=ft.MainAxisAlignment.SPACE_EVENLY,
                ),
                ft.Row([progress_ring, progress_text], alignment=ft.MainAxisAlignment.CENTER),
            ],
            spacing=8,
        ),
        expand=True,
    )

    top_section = ft.Row(
        [files_box, ft.Container(width=12), ft.Column([options_box, ft.Container(height=8), actions_box], expand=True)],
        expand=True,
    )

    # ---------------------------
    # Summary
    # ---------------------------
    summary = panel(None, visible=False)

    def tile(label, value, icon, key):
        return ft.Container(
            ft.Row(
                [
                    ft.Icon(icon, color=paint(page, key), size=18),
                    ft.Column(
                        [
                            ft.Text(label, size=12, color=paint(page, "text")),
                            ft.Text(str(value), size=14, weight=ft.FontWeight.BOLD, color=paint(page, key)),
                        ],
                        spacing=0,
                    ),
                ],
                vertical_alignment=ft.CrossAxisAlignment.CENTER,
                spacing=6,
            ),
            bgcolor=paint(page, "tile"),
            border_radius=8,
            padding=8,
            expand=True,
        )

    def show_summary(totals):
        state["totals"] = totals
        tiles = [tile(label, totals[field], icon, key) for label, field, icon, key in SUMMARY_TILES]
        summary.content = ft.Column(
            [
                ft.Text("🧾 Summary", size=15, weight=ft.FontWeight.BOLD, color=paint(page, "text")),
                ft.Row(tiles, alignment=ft.MainAxisAlignment.SPACE_BETWEEN, spacing=10),
            ],
            spacing=10,
        )
        summary.visible = True
        page.update()

    page.add(ft.Column([header, top_section, ft.Container(height=10), summary], spacing=10, expand=True))
    page.update()


if __name__ == "__main__":
    settings, _ = init_app()
    ft.app(target=lambda page: main(page, settings))
