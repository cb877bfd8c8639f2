from docchat.errors import ModelUnavailable


class FakeRuntime:
    """Заглушка сервера моделей для тестов."""

    def __init__(self, models=None, reply="Это отчёт.", error=None):
        self.models = models if models is not None else ["llama3", "mistral"]
        self.reply = reply
        self.error = error
        self.calls = []

    async def list(self):
        if self.error is not None:
            raise self.error
        return list(self.models)

    async def generate(self, prompt, model):
        self.calls.append((prompt, model))
        if self.error is not None:
            raise self.error
        return self.reply


def unavailable():
    return ModelUnavailable("Ollama is unreachable after 3 attempts")
