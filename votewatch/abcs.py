from abc import ABC, abstractmethod
from .utils import camel_to_snake

class DataProduct(ABC):

    @abstractmethod
    def handle(self, event):
        pass

    @property
    def name(self):
        return camel_to_snake(self.__class__.__name__)

class Repository(ABC):
    """A per-proposal store with its own staleness contract."""

    @abstractmethod
    def get(self, proposal_id):
        pass

    @abstractmethod
    def put(self, proposal_id, value):
        pass

    @property
    def name(self):
        return camel_to_snake(self.__class__.__name__)
