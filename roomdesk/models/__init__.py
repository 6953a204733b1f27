# roomdesk/models/__init__.py

# Import models in dependency order so relationship() strings resolve
from .store import Store
from .room import RoomCategory, Room, RoomVariant
from .booking import Booking, BookingProduct
from .bookingRequest import BookingRequest
from .roomDailyStatus import RoomDailyStatus
from .bidSequence import BidSequence
from .cashEntry import Expense, Income

__all__ = [
    'Store', 'RoomCategory', 'Room', 'RoomVariant', 'Booking', 'BookingProduct',
    'BookingRequest', 'RoomDailyStatus', 'BidSequence', 'Expense', 'Income',
]
