"""Deposit wallet: BIP-44 deposit address per user, derived from the master mnemonic."""

from functools import lru_cache

from bip_utils import Bip39SeedGenerator, Bip44, Bip44Changes, Bip44Coins

from app.core.config import get_settings
from app.core.exceptions import InvalidInputError

COINS = {
    "bch": Bip44Coins.BITCOIN_CASH,  # m/44'/145'
    "bch_slp": Bip44Coins.BITCOIN_CASH_SLP,  # m/44'/245'
}


class DepositWallet:
    def __init__(self, mnemonic: str, coin: str = "bch"):
        if not mnemonic or not mnemonic.strip():
            raise ValueError("WALLET_MNEMONIC is not configured")
        if coin not in COINS:
            raise ValueError(f"Unsupported WALLET_COIN: {coin}")
        seed = Bip39SeedGenerator(mnemonic.strip()).Generate()
        # m/44'/<coin>'/0'/0
        self._chain = Bip44.FromSeed(seed, COINS[coin]).Purpose().Coin().Account(0).Change(Bip44Changes.CHAIN_EXT)

    def address_for(self, hd_index: int) -> str:
        """CashAddr of m/44'/<coin>'/0'/0/<hd_index>. Same index, same address."""
        if isinstance(hd_index, bool) or not isinstance(hd_index, int) or hd_index < 0:
            raise InvalidInputError("hd_index must be a non-negative integer", details={"hd_index": str(hd_index)})
        return self._chain.AddressIndex(hd_index).PublicKey().ToAddress()


@lru_cache
def get_deposit_wallet() -> DepositWallet:
    s = get_settings()
    return DepositWallet(s.wallet_mnemonic, s.wallet_coin)
