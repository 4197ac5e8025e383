class CLIException(Exception):
    """
    Базовое исключение pack2tekton.

    description: человекочитаемое описание, которое CLI показывает пользователю.
    """

    def __init__(self, *args, description: str = "Something happend..."):
        self.description = description
        super().__init__(*args or (description,))

    def __str__(self) -> str:
        return self.description


class ConfigurationError(CLIException):
    """
    Ошибка конфигурации: нет build pack'а, битый YAML, неизвестный вид пайплайна,
    не заданная опция. Всегда до любых внешних вызовов, повторять бессмысленно.
    """

    def __init__(self, description: str, *args) -> None:
        super().__init__(*args, description=description)


class MissingOptionError(ConfigurationError):
    def __init__(self, option: str, *args) -> None:
        super().__init__(f"Missing option: --{option}", *args)
        self.option = option


class BuildPackNotFoundError(ConfigurationError):
    def __init__(self, pack: str, pack_dir: str, *args) -> None:
        super().__init__(f"no build pack for {pack} exists at directory {pack_dir}", *args)
        self.pack = pack
        self.pack_dir = pack_dir


class ScriptError(CLIException):
    """
    Ошибка выполнения шага set-version на рабочей копии.
    """

    def __init__(self, command: str, output: str = "", returncode: int | None = None, *args) -> None:
        description = f"Error to run command {command!r} (exit code {returncode})"
        super().__init__(*args, description=description)
        self.command = command
        self.output = output
        self.returncode = returncode


class BuildNumberError(CLIException):
    def __init__(self, pipeline_id: str, reason: str = "", *args) -> None:
        description = f"Error to generate build number for pipeline {pipeline_id}"
        if reason:
            description += f": {reason}"
        super().__init__(*args, description=description)
        self.pipeline_id = pipeline_id


class CRDValidationError(CLIException):
    """
    Сгенерированный объект не прошёл структурную проверку.

    kind, name: какой именно объект сломан; dump: его YAML для диагностики.
    """

    def __init__(self, kind: str, name: str, reason: str, dump: str = "", *args) -> None:
        description = f"Validation failed for generated {kind}: {name}: {reason}"
        if dump:
            description += f"\n{dump}"
        super().__init__(*args, description=description)
        self.kind = kind
        self.name = name
        self.reason = reason
        self.dump = dump


class MaterializeError(CLIException):
    def __init__(self, kind: str, name: str, namespace: str, reason: str = "", *args) -> None:
        description = f"failed to create/update {kind} {name} in namespace {namespace}"
        if reason:
            description += f": {reason}"
        super().__init__(*args, description=description)
        self.kind = kind
        self.name = name
        self.namespace = namespace
