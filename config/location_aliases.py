"""Bilingual location alias table (pt/en).

Keys are canonical identifiers (underscore separated); values list every
known spelling or abbreviation of the same place. Extend as coverage grows.
"""

LOCATION_ALIASES: dict[str, list[str]] = {
    # Brazilian cities
    "belo_horizonte": ["belo horizonte", "bh"],
    "brasilia": ["brasília", "brasilia", "df"],
    "salvador": ["salvador", "ssa"],
    "fortaleza": ["fortaleza", "for"],
    "manaus": ["manaus", "mao"],
    "curitiba": ["curitiba", "cwb"],
    "recife": ["recife", "rec"],
    "porto_alegre": ["porto alegre", "poa"],

    # Brazilian states
    "sao_paulo": ["são paulo", "sao paulo", "sp"],
    "rio_de_janeiro": ["rio de janeiro", "rj"],
    "minas_gerais": ["minas gerais", "mg"],
    "bahia": ["bahia", "ba"],
    "parana": ["paraná", "parana", "pr"],
    "rio_grande_do_sul": ["rio grande do sul", "rs"],
    "santa_catarina": ["santa catarina", "sc"],
    "goias": ["goiás", "goias", "go"],
    "ceara": ["ceará", "ceara", "ce"],
    "pernambuco": ["pernambuco", "pe"],

    # Portuguese cities
    "lisboa": ["lisboa", "lisbon"],
    "porto": ["porto", "oporto"],
    "braga": ["braga"],
    "coimbra": ["coimbra"],
    "funchal": ["funchal"],
}
