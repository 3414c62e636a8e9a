from __future__ import annotations

import random


WORD_BANK: dict[str, list[str]] = {
    "Malayalam Movies": [
        "Drishyam", "Lucifer", "Premam", "Bangalore Days", "Spadikam",
        "Kireedam", "Chotta Mumbai", "Hridayam", "Kumbalangi Nights",
        "Maheshinte Prathikaram", "Angamaly Diaries", "Ustad Hotel", "Charlie",
        "Action Hero Biju", "Amen", "Ee Ma Yau", "Virus", "Trance", "Jallikattu",
        "The Great Indian Kitchen", "Minnal Murali", "Joji", "Malik", "Nayattu",
        "Android Kunjappan", "Salt N Pepper", "22 Female Kottayam", "Classmates",
        "Manichitrathazhu", "Devasuram", "Narasimham", "Varavelpu",
        "His Highness Abdullah", "Godfather", "Rajavinte Makan",
        "Oru Vadakkan Veeragatha", "Bharatham", "Bheeshma Parvam", "Kaduva",
        "Bro Daddy", "Kurup", "Drishyam 2", "Ayyappanum Koshiyum", "Forensic",
        "Kappela", "Driving License", "Uyare", "Ishq", "Varathan", "Sudani from Nigeria",
        "Take Off", "Godha", "Mayaanadhi", "Ennu Ninte Moideen", "Kammatipaadam",
        "Oppam", "Pulimurugan", "In Harihar Nagar", "Ramji Rao Speaking", "Sandesham",
        "Nadodikattu", "Meesa Madhavan", "Punjabi House", "Chronic Bachelor",
        "Kilukkam", "Mithunam", "Thanmathra", "Paleri Manikyam", "Pathemari",
        "Mumbai Police", "Memories", "Big B", "Thoovanathumbikal", "Niram",
        "Notebook", "Thattathin Marayathu", "Ohm Shanthi Oshaana", "Kannur Squad",
    ],
    "Objects": [
        "Apple", "Banana", "Orange", "Grapes", "Mango", "Pineapple",
        "Watermelon", "Strawberry", "Cherry", "Lemon", "Coconut", "Peach",
        "Car", "Bus", "Truck", "Bicycle", "Motorcycle", "Train",
        "Airplane", "Helicopter", "Boat", "Ship", "Rocket", "Submarine",
        "House", "Building", "Castle", "Bridge", "Tower", "Pyramid",
        "Tree", "Flower", "Rose", "Sunflower", "Tulip", "Cactus",
        "Sun", "Moon", "Star", "Cloud", "Rainbow", "Lightning",
        "Mountain", "River", "Ocean", "Beach", "Desert", "Forest",
        "Chair", "Table", "Bed", "Sofa", "Desk", "Shelf",
        "Door", "Window", "Mirror", "Clock", "Lamp", "Fan",
        "Cup", "Plate", "Bowl", "Spoon", "Fork", "Knife",
        "Phone", "Computer", "Laptop", "Tablet", "TV", "Radio",
        "Camera", "Watch", "Headphones", "Speaker", "Microphone", "Remote",
        "Book", "Pen", "Pencil", "Eraser", "Ruler", "Scissors",
        "Shirt", "Pants", "Dress", "Jacket", "Shoe", "Hat",
        "Glasses", "Ring", "Necklace", "Crown", "Helmet", "Umbrella",
        "Ball", "Bat", "Racket", "Chess", "Dice", "Kite",
        "Guitar", "Piano", "Drum", "Flute", "Violin", "Trumpet",
        "Pizza", "Burger", "Sandwich", "Hot Dog", "Cake", "Ice Cream",
        "Cat", "Dog", "Bird", "Fish", "Rabbit", "Elephant",
        "Lion", "Tiger", "Giraffe", "Penguin", "Owl", "Snake",
        "Turtle", "Frog", "Dinosaur", "Butterfly", "Bee", "Spider",
        "Hammer", "Screwdriver", "Saw", "Ladder", "Key", "Lock",
        "Balloon", "Robot", "Alien", "Spaceship", "Anchor", "Magnet",
    ],
}


def categories() -> list[str]:
    return sorted(WORD_BANK.keys())


def has_category(category: str) -> bool:
    return category in WORD_BANK


def pick_words(words: list[str], count: int, rng: random.Random | None = None) -> list[str]:
    """Pick up to `count` distinct words (case-insensitive) at random."""
    r = rng or random
    unique: list[str] = []
    seen: set[str] = set()
    for w in words:
        key = w.strip().lower()
        if key and key not in seen:
            seen.add(key)
            unique.append(w.strip())

    if count <= 0 or not unique:
        return []
    return r.sample(unique, min(count, len(unique)))


def pick_word(words: list[str], rng: random.Random | None = None) -> str | None:
    picked = pick_words(words, 1, rng)
    return picked[0] if picked else None


def words_for_category(category: str, count: int, rng: random.Random | None = None) -> list[str]:
    return pick_words(WORD_BANK.get(category, []), count, rng)
