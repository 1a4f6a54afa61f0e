"""RoonCtrl: resilient Roon Core connection and zone reconciliation."""

__version__ = "0.1.0"
