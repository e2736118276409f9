from blessed import Terminal
from pyfiglet import Figlet

term = Terminal()


def print_banner() -> str:
    """Render the application banner"""
    f = Figlet(font='slant')
    return f.renderText('Tab Sessions')


banner = print_banner()
banner_lines = len(banner.split('\n'))


def clear_screen():
    print(term.home + term.clear)


def clear_screen_preserve_banner(banner_lines):
    print(term.move(banner_lines, 0) + term.clear_eos())
