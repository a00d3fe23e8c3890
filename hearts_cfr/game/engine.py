"""
hearts_cfr/game/engine.py

Pure, immutable Hearts rules engine.

A ClosedDeal is the public view of a deal: it holds no information about how
unplayed cards are distributed among the players. An OpenDeal adds every
seat's hand. An InformationSet is what the seat to act can observe.

Every state transition returns a new object; nothing is mutated in place.
"""

import dataclasses
from dataclasses import dataclass, field
from functools import cached_property
from typing import FrozenSet, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..cfr.exceptions import GameStateError
from ..constants import (
    NUM_CARDS,
    NUM_CARDS_PER_HAND,
    NUM_SEATS,
    TOTAL_POINTS,
    Seat,
    Suit,
)
from .cards import ALL_CARDS, TWO_OF_CLUBS, Card, shuffle_deck, sort_cards

Hand = FrozenSet[Card]
Score = Tuple[int, ...]

ZERO_SCORE: Score = (0,) * NUM_SEATS


@dataclass(frozen=True)
class Trick:
    """One card played by each seat in turn."""

    leader: Seat
    cards: Tuple[Card, ...] = ()  # chronological order
    high_play: Optional[Tuple[Seat, Card]] = None

    @property
    def suit_led(self) -> Optional[Suit]:
        return self.cards[0].suit if self.cards else None

    @property
    def current_player(self) -> Seat:
        return self.leader.incr(len(self.cards))

    @property
    def is_complete(self) -> bool:
        return len(self.cards) == NUM_SEATS

    @property
    def point_value(self) -> int:
        return sum(card.point_value for card in self.cards)

    def plays(self) -> Iterator[Tuple[Seat, Card]]:
        """Each card in this trick with its player, in chronological order."""
        return zip(self.leader.cycle(), self.cards)

    def add_play(self, card: Card) -> "Trick":
        if self.is_complete:
            raise GameStateError("Cannot play on a complete trick")
        player = self.current_player
        high_play = self.high_play
        if high_play is None:
            high_play = (player, card)
        else:
            _, prev_card = high_play
            if card.suit == prev_card.suit and card.rank > prev_card.rank:
                high_play = (player, card)
        return Trick(self.leader, self.cards + (card,), high_play)


@dataclass(frozen=True)
class ClosedDeal:
    """Public state of a deal."""

    dealer: Seat
    current_trick: Optional[Trick] = None
    completed_tricks: Tuple[Trick, ...] = ()  # chronological order
    unplayed_cards: FrozenSet[Card] = frozenset(ALL_CARDS)
    hearts_broken: bool = False
    voids: FrozenSet[Tuple[Seat, Suit]] = frozenset()
    score: Score = ZERO_SCORE

    def start_play(self, leader: Seat) -> "ClosedDeal":
        if self.current_trick is not None or self.completed_tricks:
            raise GameStateError("Play has already started")
        return dataclasses.replace(self, current_trick=Trick(leader))

    @property
    def num_cards_played(self) -> int:
        n_current = len(self.current_trick.cards) if self.current_trick else 0
        return len(self.completed_tricks) * NUM_SEATS + n_current

    @property
    def is_complete(self) -> bool:
        return len(self.completed_tricks) == NUM_CARDS_PER_HAND

    @property
    def trick(self) -> Trick:
        """Current trick."""
        if self.current_trick is None:
            raise GameStateError("No current trick")
        return self.current_trick

    @property
    def current_player(self) -> Seat:
        return self.trick.current_player

    def is_void(self, seat: Seat, suit: Suit) -> bool:
        return (seat, suit) in self.voids

    def tricks(self) -> List[Trick]:
        """Tricks in chronological order, including the current trick."""
        tricks = list(self.completed_tricks)
        if self.current_trick is not None:
            tricks.append(self.current_trick)
        return tricks

    def legal_plays(self, hand: Hand) -> List[Card]:
        """Cards that can be played from the given hand, in deck order."""
        trick = self.trick
        suit_led = trick.suit_led
        i_trick = len(self.completed_tricks)

        # must lead 2C on first trick
        if i_trick == 0 and suit_led is None:
            if TWO_OF_CLUBS not in hand:
                raise GameStateError("First leader does not hold the two of clubs")
            return [TWO_OF_CLUBS]

        # can't lead a heart until they're broken
        if suit_led is None:
            if self.hearts_broken:
                return sort_cards(hand)
            non_hearts = [card for card in hand if card.suit != Suit.HEARTS]
            return sort_cards(non_hearts or hand)

        # must follow suit, if possible
        cards = [card for card in hand if card.suit == suit_led] or list(hand)

        # no point cards on first trick (unless it's unavoidable)
        if i_trick == 0:
            cards = [card for card in cards if card.point_value == 0] or cards

        return sort_cards(cards)

    def add_play(self, card: Card) -> "ClosedDeal":
        """Plays the given card for the current player."""
        if self.is_complete:
            raise GameStateError("Deal is already complete")
        if card not in self.unplayed_cards:
            raise GameStateError(f"Card {card} has already been played")

        trick = self.trick
        player = trick.current_player
        if self.is_void(player, card.suit):
            raise GameStateError(f"{player.name} is known to be void in {card.suit.name}")
        updated = trick.add_play(card)

        # player is void in suit led?
        voids = self.voids
        if card.suit != updated.suit_led:
            voids = voids | {(player, updated.suit_led)}

        # leader is void in all non-hearts suits? (very rare)
        if (
            card.suit == Suit.HEARTS
            and not self.hearts_broken
            and updated.leader == player
        ):
            voids = voids | {
                (player, Suit.CLUBS),
                (player, Suit.DIAMONDS),
                (player, Suit.SPADES),
            }

        completed = self.completed_tricks
        score = self.score
        current: Optional[Trick] = updated
        if updated.is_complete:
            taker, _ = updated.high_play
            completed = completed + (updated,)
            current = Trick(taker) if len(completed) < NUM_CARDS_PER_HAND else None
            points = list(score)
            points[taker] += updated.point_value
            score = tuple(points)

        return dataclasses.replace(
            self,
            current_trick=current,
            completed_tricks=completed,
            unplayed_cards=self.unplayed_cards - {card},
            hearts_broken=self.hearts_broken or card.point_value > 0,  # QS also breaks hearts
            voids=voids,
            score=score,
        )


@dataclass(frozen=True)
class InformationSet:
    """Everything the seat to act can observe."""

    player: Seat
    hand: Hand
    deal: ClosedDeal = field(repr=False)

    @cached_property
    def legal_actions(self) -> List[Card]:
        actions = self.deal.legal_plays(self.hand)
        if not actions:
            raise GameStateError("No legal actions in a non-terminal deal")
        return actions


@dataclass(frozen=True)
class OpenDeal:
    """A deal including every seat's unplayed cards."""

    closed_deal: ClosedDeal
    hands: Tuple[Hand, ...]

    @classmethod
    def from_hands(cls, dealer: Seat, hands: Sequence[Hand]) -> "OpenDeal":
        cards = [card for hand in hands for card in hand]
        if len(hands) != NUM_SEATS or len(set(cards)) != NUM_CARDS or len(cards) != NUM_CARDS:
            raise GameStateError("Hands must partition the deck among all seats")
        return cls(ClosedDeal(dealer), tuple(frozenset(hand) for hand in hands))

    @classmethod
    def from_deck(cls, dealer: Seat, deck: Sequence[Card]) -> "OpenDeal":
        """Deals cards from the given deck, starting with the dealer's left."""
        hands: List[List[Card]] = [[] for _ in range(NUM_SEATS)]
        for i_card, card in enumerate(deck):
            seat = dealer.incr((i_card + 1) % NUM_SEATS)
            hands[seat].append(card)
        return cls.from_hands(dealer, hands)

    def start_play(self) -> "OpenDeal":
        """Starts play with the holder of the two of clubs."""
        leader = next(
            seat for seat in Seat if TWO_OF_CLUBS in self.hands[seat]
        )
        return OpenDeal(self.closed_deal.start_play(leader), self.hands)

    @property
    def current_player(self) -> Seat:
        return self.closed_deal.current_player

    @property
    def current_hand(self) -> Hand:
        return self.hands[self.current_player]

    def current_info_set(self) -> InformationSet:
        player = self.current_player
        return InformationSet(player, self.hands[player], self.closed_deal)

    def add_play(self, card: Card) -> "OpenDeal":
        player = self.current_player
        hand = self.hands[player]
        if card not in hand:
            raise GameStateError(f"{player.name} does not hold {card}")
        hands = list(self.hands)
        hands[player] = hand - {card}
        return OpenDeal(self.closed_deal.add_play(card), tuple(hands))


def deal_random(rng: np.random.Generator, dealer: Seat) -> OpenDeal:
    """Shuffles, deals and starts play."""
    return OpenDeal.from_deck(dealer, shuffle_deck(rng)).start_play()


def final_score(deal: ClosedDeal) -> Score:
    """Points of a completed deal, after shooting the moon."""
    points = deal.score
    if sum(points) != TOTAL_POINTS:
        raise GameStateError(f"Deal scored {sum(points)} points, expected {TOTAL_POINTS}")
    if TOTAL_POINTS in points:
        return tuple(0 if pts == TOTAL_POINTS else TOTAL_POINTS for pts in points)
    return points


def try_get_score(deal: OpenDeal) -> Optional[Score]:
    """The deal's final score, if it is complete."""
    if deal.closed_deal.is_complete:
        return final_score(deal.closed_deal)
    return None


def zero_sum_payoff(score: Score) -> np.ndarray:
    """
    Payoff of each seat for the given score. A seat's payoff is the average
    score of the other seats minus its own, so payoffs sum to zero.
    """
    points = np.asarray(score, dtype=np.float32)
    if points.shape != (NUM_SEATS,):
        raise GameStateError(f"Expected one score per seat, got shape {points.shape}")
    other_avg = (points.sum() - points) / (NUM_SEATS - 1)
    return (other_avg - points).astype(np.float32)


def terminal_payoff(deal: OpenDeal) -> Optional[np.ndarray]:
    score = try_get_score(deal)
    return None if score is None else zero_sum_payoff(score)


def legal_actions(info_set: InformationSet) -> List[Card]:
    return info_set.legal_actions
