import PyInstaller.__main__
import platform

# --- Configuration ---
APP_NAME = "ContactsReconciler"
ENTRY_POINT = "contacts_reconciler_frontend.py"
ICON_PATH = "assets/logo.png"
ASSETS_PATH = "assets"
HIDDEN_IMPORTS = [
    "contacts_importer",
    "contacts_store",
    "contacts_parsers",
    "vobject",
    "keyring.backends",
]


def build_command(system=None):
    """PyInstaller arguments for the current platform."""
    separator = ';' if (system or platform.system()) == "Windows" else ':'

    command = [
        '--name', APP_NAME,
        '--onefile',
        '--windowed',  # GUI app, no console window
        f'--icon={ICON_PATH}',
        f'--add-data={ASSETS_PATH}{separator}assets',
    ]
    command += [f'--hidden-import={name}' for name in HIDDEN_IMPORTS]
    command.append(ENTRY_POINT)
    return command


def main():
    command = build_command()
    print(f"Running PyInstaller with command: pyinstaller {' '.join(command)}")

    try:
        PyInstaller.__main__.run(command)
        print("\nBuild process finished successfully!")
        print(f"Executable created in the 'dist' folder: {APP_NAME}")
    except Exception as e:
        print(f"\nAn error occurred during the build process: {e}")
        print("Please check the PyInstaller logs for more details.")


if __name__ == "__main__":
    print("Starting the build process...")
    if platform.system() == "Windows":
        print("On Windows, it is recommended to use a .ico file for the icon.")
    main()
