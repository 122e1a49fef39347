"""config-sync: track dotfiles and distribute them with git."""

__version__ = "0.1.0"
