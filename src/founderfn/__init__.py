"""founderfn: server-side functions of the Founder community platform."""

__version__ = "0.1.0"
