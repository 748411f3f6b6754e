# courier_ledger/repositories/counter_repo.py
from sqlmodel import Session

from courier_ledger.models.counter import Counter


class CounterRepository:
    """
    Named sequences. Never commits; values become visible to other
    sessions only with the surrounding transaction.
    """

    def _get_or_create(self, session: Session, name: str) -> Counter:
        counter = session.get(Counter, name)
        if counter is None:
            counter = Counter(name=name, next_value=1)
            session.add(counter)
            session.flush()
        return counter

    def peek(self, session: Session, name: str) -> int:
        """Return the next value without consuming it."""
        counter = session.get(Counter, name)
        return counter.next_value if counter else 1

    def take(self, session: Session, name: str) -> int:
        """Consume and return the next value."""
        counter = self._get_or_create(session, name)
        value = counter.next_value
        counter.next_value = value + 1
        session.add(counter)
        session.flush()
        return value

    def reset(self, session: Session, name: str, next_value: int) -> None:
        counter = self._get_or_create(session, name)
        counter.next_value = next_value
        session.add(counter)
        session.flush()
