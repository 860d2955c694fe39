"""
ComplyHub CLI module.

Command groups live in ``complyhub.cli.commands``; the ``complyhub`` entry
point is ``complyhub.__main__:main``.
"""
