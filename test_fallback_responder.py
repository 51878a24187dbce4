#!/usr/bin/env python3
"""
Test script for the keyword fallback responder
"""
from sitechat.fallback_responder import (
    FAREWELL_REPLY,
    GREETING_REPLY,
    NO_INFORMATION_REPLY,
    BasicResponder,
)
from sitechat.models.site_content import Product, SiteInfo
from sitechat.site_content import InMemorySiteContent

CONTEXT = (
    "Horarios\nhttps://laspalmas.example/horarios\nAbrimos de lunes a viernes de 8 a 5."
    "\n\n"
    "Piscina\nhttps://laspalmas.example/piscina\nLa piscina abre a las 9 y cierra a las 18."
)


def make_shop():
    return InMemorySiteContent(
        site_info=SiteInfo(name="Tienda Las Palmas"),
        products=[
            Product(7, "Café de altura", price="12.50", currency="USD", stock_quantity=3,
                    url="https://laspalmas.example/cafe"),
            Product(8, "Té verde", price="4.00", currency="USD", stock_status="outofstock"),
        ],
    )


def test_greetings_and_farewells():
    responder = BasicResponder()
    assert responder.respond("Hola") == GREETING_REPLY
    assert responder.respond("¡Buenos días!") == GREETING_REPLY
    assert responder.respond("Muchas gracias") == FAREWELL_REPLY
    assert responder.respond("adiós") == FAREWELL_REPLY
    print("✅ Canned greeting and farewell replies")


def test_best_matching_paragraph():
    reply = BasicResponder().respond("¿A qué hora abre la piscina?", CONTEXT)
    assert reply.startswith("**Piscina**\n"), reply
    assert "abre a las 9" in reply
    print("✅ Paragraph with the most shared words returned")


def test_products_for_commerce_questions():
    reply = BasicResponder(make_shop()).respond("¿Cuál es el precio del café?", CONTEXT)
    assert reply.startswith("Encontré estos productos:")
    assert "**Café de altura**" in reply
    assert "Precio: 12.50 USD" in reply
    assert "Stock: 3" in reply
    assert "https://laspalmas.example/cafe" in reply
    print("✅ Matching products listed with price, stock and link")


def test_stock_status_label():
    reply = BasicResponder(make_shop()).respond("¿Tienen té verde?")
    assert "**Té verde**" in reply
    assert "Stock: agotado" in reply
    print("✅ Stock status translated")


def test_no_information():
    assert BasicResponder().respond("asdkjhasd", "") == NO_INFORMATION_REPLY
    assert BasicResponder(make_shop()).respond("asdkjhasd qwpeoiru", CONTEXT) == NO_INFORMATION_REPLY
    print("✅ Honest reply when nothing matches")


if __name__ == "__main__":
    print("=" * 60)
    print("Testing Fallback Responder")
    print("=" * 60)
    test_greetings_and_farewells()
    test_best_matching_paragraph()
    test_products_for_commerce_questions()
    test_stock_status_label()
    test_no_information()
    print("\n✅ ALL TESTS PASSED!")
