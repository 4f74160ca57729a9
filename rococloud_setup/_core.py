# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import os
import time
from abc import ABCMeta
from abc import abstractmethod
from typing import Sequence

from rococloud_setup._host import Host


class Command(metaclass=ABCMeta):

    @abstractmethod
    def run(self, host: Host):
        pass


class Run(Command):

    def __init__(self, command):
        self._command = command

    def __repr__(self):
        return f'{Run.__name__}({self._command!r})'

    def run(self, host):
        host.run(self._command)


class WriteFile(Command):
    """Overwrite file with the given content. Make parent dirs.

    >>> WriteFile('/etc/fail2ban/jail.d/x.conf', '[x]\\n')
    WriteFile('/etc/fail2ban/jail.d/x.conf', 0o644)
    """

    def __init__(self, path: str, content: str, mode: int = 0o644):
        self._path = path
        self._content = content
        self._mode = mode

    def __repr__(self):
        return f'{WriteFile.__name__}({self._path!r}, {oct(self._mode)})'

    def run(self, host):
        [parent, _, _] = self._path.rpartition('/')
        if parent:
            host.mkdir(parent)
        host.write_text(self._path, self._content, self._mode)


class AppendLine(Command):
    """Append line unless the file already has exactly the same line."""

    def __init__(self, path: str, line: str):
        self._path = path
        self._line = line

    def __repr__(self):
        return f'{AppendLine.__name__}({self._path!r}, {self._line!r})'

    def run(self, host):
        text = host.read_text(self._path) if host.exists(self._path) else ''
        if self._line in text.splitlines():
            _logger.info("%s: already has: %s", self._path, self._line)
            return
        if text and not text.endswith('\n'):
            text += '\n'
        host.write_text(self._path, text + self._line + '\n')


class ReplaceLine(Command):
    """Replace whole lines equal to old with new. Leave others intact.

    Running it again is a no-op since old lines are gone.
    """

    def __init__(self, path: str, old: str, new: str):
        self._path = path
        self._old = old
        self._new = new

    def __repr__(self):
        return f'{ReplaceLine.__name__}({self._path!r}, {self._old!r}, {self._new!r})'

    def run(self, host):
        lines = host.read_text(self._path).splitlines(keepends=True)
        replaced = 0
        for i, line in enumerate(lines):
            if line.rstrip('\n') == self._old:
                lines[i] = self._new + '\n'
                replaced += 1
        if replaced:
            host.write_text(self._path, ''.join(lines))
        _logger.info("%s: %d line(s) replaced with: %s", self._path, replaced, self._new)


class CompositeCommand(Command):

    def __init__(self, commands: Sequence[Command]):
        self._commands: Sequence[Command] = commands

    def __repr__(self):
        return f'<{self.__class__.__name__} with {len(self._commands)} commands>'

    def run(self, host):
        for command in self._commands:
            command.run(host)


class Reboot(Command):

    def __init__(self, delay_sec: float = 3):
        self._delay_sec = delay_sec

    def __repr__(self):
        return f'{Reboot.__name__}({self._delay_sec!r})'

    def run(self, host):
        _logger.info("Preparation complete. Rebooting in %s seconds", self._delay_sec)
        # Let the log output reach the terminal.
        time.sleep(self._delay_sec)
        host.run('reboot')


class Questionnaire:

    def __init__(self, prompt):
        self._user_agrees = None
        self._should_ask_user = True
        self._prompt = prompt

    def user_agrees_with(self, question):
        if not os.getenv('ROCOCLOUD_ASK_FOR_CONFIRMATION', ''):
            return True
        prompt = f"{self._prompt} {question} [y,n,a,d]? "
        if self._should_ask_user:
            while True:
                answer = input(prompt)
                answer = answer[:1].lower()
                if answer == 'y':
                    self._user_agrees = True
                    self._should_ask_user = True
                elif answer == 'n':
                    self._user_agrees = False
                    self._should_ask_user = True
                elif answer == 'a':
                    self._user_agrees = True
                    self._should_ask_user = False
                elif answer == 'd':
                    self._user_agrees = False
                    self._should_ask_user = False
                else:
                    self._user_agrees = None
                if self._user_agrees is not None:
                    break
        else:
            assert self._user_agrees is not None
            answer = 'a' if self._user_agrees else 'd'
            print(prompt + answer, flush=True)
        return self._user_agrees


_logger = logging.getLogger(__name__)
