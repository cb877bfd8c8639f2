"""docchat: загрузка PDF-документов и вопросы к ним через локальную модель."""

__version__ = "0.1.0"
