# voicerouter/services/outbound_whitelist_service.py
# -*- coding: utf-8 -*-
"""
Outbound Whitelist Matcher
Authorizes an outbound destination and picks the trunk to send it over.
The most specific whitelist entry wins: a country (or calling code) match is
worth 10 points, a matching prefix adds one point per character.
"""
import logging
import re

from voicerouter.services.routing_repository import RoutingRepository

log = logging.getLogger(__name__)

COUNTRY_MATCH_SCORE = 10
MAX_CALLING_CODE_DIGITS = 4

# Calling code -> ISO-3166 alpha-2. Shared codes map to their primary country.
CALLING_CODES = {
    '+1': 'US', '+7': 'RU', '+20': 'EG', '+27': 'ZA', '+30': 'GR', '+31': 'NL', '+32': 'BE', '+33': 'FR',
    '+34': 'ES', '+36': 'HU', '+39': 'IT', '+40': 'RO', '+41': 'CH', '+43': 'AT', '+44': 'GB', '+45': 'DK',
    '+46': 'SE', '+47': 'NO', '+48': 'PL', '+49': 'DE', '+51': 'PE', '+52': 'MX', '+53': 'CU', '+54': 'AR',
    '+55': 'BR', '+56': 'CL', '+57': 'CO', '+58': 'VE', '+60': 'MY', '+61': 'AU', '+62': 'ID', '+63': 'PH',
    '+64': 'NZ', '+65': 'SG', '+66': 'TH', '+81': 'JP', '+82': 'KR', '+84': 'VN', '+86': 'CN', '+90': 'TR',
    '+91': 'IN', '+92': 'PK', '+93': 'AF', '+94': 'LK', '+95': 'MM', '+98': 'IR', '+212': 'MA', '+213': 'DZ',
    '+216': 'TN', '+218': 'LY', '+220': 'GM', '+221': 'SN', '+222': 'MR', '+223': 'ML', '+224': 'GN', '+225': 'CI',
    '+226': 'BF', '+227': 'NE', '+228': 'TG', '+229': 'BJ', '+230': 'MU', '+231': 'LR', '+232': 'SL', '+233': 'GH',
    '+234': 'NG', '+235': 'TD', '+236': 'CF', '+237': 'CM', '+238': 'CV', '+239': 'ST', '+240': 'GQ', '+241': 'GA',
    '+242': 'CG', '+243': 'CD', '+244': 'AO', '+245': 'GW', '+246': 'IO', '+248': 'SC', '+249': 'SD', '+250': 'RW',
    '+251': 'ET', '+252': 'SO', '+253': 'DJ', '+254': 'KE', '+255': 'TZ', '+256': 'UG', '+257': 'BI', '+258': 'MZ',
    '+260': 'ZM', '+261': 'MG', '+262': 'RE', '+263': 'ZW', '+264': 'NA', '+265': 'MW', '+266': 'LS', '+267': 'BW',
    '+268': 'SZ', '+269': 'KM', '+290': 'SH', '+291': 'ER', '+297': 'AW', '+298': 'FO', '+299': 'GL', '+350': 'GI',
    '+351': 'PT', '+352': 'LU', '+353': 'IE', '+354': 'IS', '+355': 'AL', '+356': 'MT', '+357': 'CY', '+358': 'FI',
    '+359': 'BG', '+370': 'LT', '+371': 'LV', '+372': 'EE', '+373': 'MD', '+374': 'AM', '+375': 'BY', '+376': 'AD',
    '+377': 'MC', '+378': 'SM', '+380': 'UA', '+381': 'RS', '+382': 'ME', '+383': 'XK', '+385': 'HR', '+386': 'SI',
    '+387': 'BA', '+389': 'MK', '+420': 'CZ', '+421': 'SK', '+423': 'LI', '+500': 'FK', '+501': 'BZ', '+502': 'GT',
    '+503': 'SV', '+504': 'HN', '+505': 'NI', '+506': 'CR', '+507': 'PA', '+508': 'PM', '+509': 'HT', '+590': 'GP',
    '+591': 'BO', '+592': 'GY', '+593': 'EC', '+594': 'GF', '+595': 'PY', '+596': 'MQ', '+597': 'SR', '+598': 'UY',
    '+599': 'CW', '+670': 'TL', '+672': 'AQ', '+673': 'BN', '+674': 'NR', '+675': 'PG', '+676': 'TO', '+677': 'SB',
    '+678': 'VU', '+679': 'FJ', '+680': 'PW', '+681': 'WF', '+682': 'CK', '+683': 'NU', '+684': 'AS', '+685': 'WS',
    '+686': 'KI', '+687': 'NC', '+688': 'TV', '+689': 'PF', '+690': 'TK', '+691': 'FM', '+692': 'MH', '+850': 'KP',
    '+852': 'HK', '+853': 'MO', '+855': 'KH', '+856': 'LA', '+880': 'BD', '+886': 'TW', '+960': 'MV', '+961': 'LB',
    '+962': 'JO', '+963': 'SY', '+964': 'IQ', '+965': 'KW', '+966': 'SA', '+967': 'YE', '+968': 'OM', '+970': 'PS',
    '+971': 'AE', '+972': 'IL', '+973': 'BH', '+974': 'QA', '+975': 'BT', '+976': 'MN', '+977': 'NP', '+992': 'TJ',
    '+993': 'TM', '+994': 'AZ', '+995': 'GE', '+996': 'KG', '+998': 'UZ',
}


def normalize_number(number: str | None) -> str:
    """Strip formatting and turn a leading '00' into '+'."""
    number = re.sub(r'[\s\-().]', '', number or '')
    if number.startswith('00'):
        number = '+' + number[2:]
    return number


def extract_calling_code(number: str | None) -> str | None:
    """Longest known calling code ('+972') at the start of an international number."""
    number = normalize_number(number)
    if not number.startswith('+'):
        return None
    digits = number[1:]
    for length in range(min(MAX_CALLING_CODE_DIGITS, len(digits)), 0, -1):
        code = '+' + digits[:length]
        if code in CALLING_CODES:
            return code
    return None


def calling_code_to_country(calling_code: str | None) -> str | None:
    if not calling_code:
        return None
    if not calling_code.startswith('+'):
        calling_code = '+' + calling_code
    return CALLING_CODES.get(calling_code)


def match_score(entry, number: str, calling_code: str | None, country_code: str | None) -> int:
    """
    Score one whitelist entry against a normalized number. 0 means no match.

    `destination_country` may hold the ISO code or the calling code, with or
    without '+'. A prefix starting with '+' is matched against the full number;
    a bare prefix is matched against the national part for country-matched
    entries and against the full number otherwise.
    """
    score = 0
    country = (entry.destination_country or '').strip()
    country_matched = bool(country) and (
        (country_code is not None and country.upper() == country_code)
        or (calling_code is not None and country in (calling_code, calling_code.lstrip('+')))
    )
    if country_matched:
        score += COUNTRY_MATCH_SCORE

    prefix = (entry.destination_prefix or '').replace(' ', '')
    if prefix:
        if prefix.startswith('+'):
            if number.startswith(prefix):
                score += len(prefix)
        elif country_matched:
            if number[len(calling_code):].startswith(prefix):
                score += len(prefix)
        elif number.startswith(prefix):
            score += len(prefix)
    return score


class OutboundWhitelistService:

    @staticmethod
    def best_match(entries, dialed_number: str):
        """
        Highest-scoring entry among `entries`, or None if none scores.
        Equal scores go to the entry with the lowest id.
        """
        number = normalize_number(dialed_number)
        calling_code = extract_calling_code(number)
        country_code = calling_code_to_country(calling_code)

        best, best_score = None, 0
        for entry in entries:
            score = match_score(entry, number, calling_code, country_code)
            log.debug(f"Whitelist entry {entry.id} ({entry.destination_country}/{entry.destination_prefix}) scored {score} for {number}")
            if score <= 0:
                continue
            if best is None or score > best_score or (score == best_score and entry.id < best.id):
                best, best_score = entry, score

        if best is not None:
            log.info(f"Outbound whitelist match for {number} (calling code {calling_code}, country {country_code}): "
                     f"entry {best.id}, trunk '{best.outbound_trunk_name}', score {best_score}")
        else:
            log.info(f"No outbound whitelist match for {number} (calling code {calling_code}, country {country_code})")
        return best

    @staticmethod
    def find_trunk(tenant_id: int, dialed_number: str):
        """
        Whitelist entry authorizing `dialed_number` for this tenant.

        Returns:
            OutboundWhitelistModel | None: None means outbound routing is denied.
        """
        entries = RoutingRepository.whitelist_entries(tenant_id)
        if not entries:
            log.info(f"Tenant {tenant_id} has no outbound whitelist entries; denying {dialed_number}")
            return None
        return OutboundWhitelistService.best_match(entries, dialed_number)
