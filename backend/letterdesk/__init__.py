"""LetterDesk - letter requests and letter numbering for university administration"""

__version__ = "1.0.0"
