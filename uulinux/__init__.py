"""Linux system administration utilities: blockdev, chcpu, ctrlaltdel, dmesg, fsfreeze and last."""

__version__ = "0.0.1"