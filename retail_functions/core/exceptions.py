class RetailFunctionsError(Exception):
    pass


class OrderValidationError(RetailFunctionsError):
    """Inbound order failed validation. Reported to the caller, never retried."""


class QueueUnavailableError(RetailFunctionsError):
    """The queue backend could not be reached or rejected the operation."""


class TransientStoreError(RetailFunctionsError):
    """A table store read or write failed. The caller should let the message be redelivered."""


class TableNotFoundError(RetailFunctionsError):
    def __init__(self, table: str) -> None:
        super().__init__(f"Table {table} does not exist")
        self.table = table


class EntityAlreadyExistsError(RetailFunctionsError):
    def __init__(self, table: str, partition_key: str, row_key: str) -> None:
        super().__init__(f"Entity ({partition_key}, {row_key}) already exists in {table}")
        self.table = table
        self.partition_key = partition_key
        self.row_key = row_key


class InvalidQueueNameError(OrderValidationError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Invalid queue name {name!r}: use 3-63 lowercase letters, digits and single hyphens, "
            f"starting and ending with a letter or digit"
        )
        self.name = name
