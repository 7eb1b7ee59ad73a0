"""designcrew: turn a design source into isolated, parallel component builds."""

__version__ = "0.3.0"
