# Key chords are stored as "Modifier+Modifier+KeyName", e.g. "Shift+space",
# the same format the preferences key capture dialog produces.
from dataclasses import dataclass

# X11 modifier bits, shared by IBus.ModifierType and bamboo-core
SHIFT_MASK = 1 << 0
LOCK_MASK = 1 << 1
CONTROL_MASK = 1 << 2
MOD1_MASK = 1 << 3
SUPER_MASK = 1 << 26
HYPER_MASK = 1 << 27
META_MASK = 1 << 28
RELEASE_MASK = 1 << 30

MODIFIER_NAMES = {
    "Shift": SHIFT_MASK,
    "Control": CONTROL_MASK,
    "Ctrl": CONTROL_MASK,
    "Alt": MOD1_MASK,
    "Super": SUPER_MASK,
    "Hyper": HYPER_MASK,
    "Meta": META_MASK,
}
CHORD_MASK = SHIFT_MASK | CONTROL_MASK | MOD1_MASK | SUPER_MASK | HYPER_MASK | META_MASK

SHIFT_KEYS = ("Shift_L", "Shift_R")


@dataclass(frozen=True)
class KeyEvent:
    keyval: int
    state: int
    name: str = ""

    @property
    def is_release(self):
        return bool(self.state & RELEASE_MASK)

    @property
    def is_shift(self):
        return self.name in SHIFT_KEYS


@dataclass(frozen=True)
class KeyChord:
    name: str
    modifiers: int = 0

    @classmethod
    def parse(cls, text):
        parts = [p.strip() for p in text.strip().split("+")]
        # "Control++" binds the plus key
        if len(parts) > 1 and parts[-1] == "" and parts[-2] == "":
            parts = parts[:-2] + ["plus"]
        name = parts[-1]
        if not name:
            raise ValueError(f"empty key in chord {text!r}")
        modifiers = 0
        for mod in parts[:-1]:
            if mod not in MODIFIER_NAMES:
                raise ValueError(f"unknown modifier {mod!r} in chord {text!r}")
            modifiers |= MODIFIER_NAMES[mod]
        return cls(name, modifiers)

    def matches(self, event):
        if (event.state & CHORD_MASK) != self.modifiers:
            return False
        if len(self.name) == 1 and len(event.name) == 1:
            return self.name.lower() == event.name.lower()
        return self.name == event.name

    def __str__(self):
        mods = [n for n in ("Shift", "Control", "Alt", "Super", "Hyper", "Meta")
                if self.modifiers & MODIFIER_NAMES[n]]
        return "+".join(mods + [self.name])


def parse_key_list(text):
    chords = []
    for item in text.split(";"):
        if item.strip():
            chords.append(KeyChord.parse(item))
    return tuple(chords)


def format_key_list(chords):
    return ";".join(str(c) for c in chords)


def check_key_list(event, chords):
    return any(chord.matches(event) for chord in chords)
