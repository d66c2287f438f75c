from platform import system


def is_linux():
    return system() == 'Linux'


def is_windows():
    return system() == 'Windows'
